"""HMAC-SHA256 signatures for webhook bodies.

The signature covers the exact request body bytes. The envelope already
carries the dispatch timestamp, so it is signed implicitly; nothing else
is mixed into the digest.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Webhook-Signature"


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_signature(payload: bytes | str, secret: str) -> str:
    """Compute the HMAC-SHA256 signature for a webhook body.

    Args:
        payload: Raw JSON body (bytes, or str encoded as UTF-8).
        secret: Shared secret for HMAC.

    Returns:
        Lowercase hex digest.
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=_as_bytes(payload),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: bytes | str, secret: str, signature: str) -> bool:
    """Verify a webhook signature in constant time.

    Subscribers can use this against the raw body they received and the
    value of the X-Webhook-Signature header.

    Returns:
        True if signature is valid, False otherwise.
    """
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
