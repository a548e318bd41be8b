"""Operator authentication for the webhook management API.

Bearer tokens have the form ``operator_id:expires_at:signature`` where
signature = HMAC-SHA256(secret, "operator_id:expires_at").
"""

from __future__ import annotations

import hashlib
import hmac
import time
from functools import lru_cache

from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from arcfx.config import Settings
from arcfx.exceptions import AuthenticationError
from arcfx.logging import get_logger

logger = get_logger(__name__)

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)


class Operator(BaseModel):
    """An authenticated operator of the management API."""

    model_config = ConfigDict(extra="forbid")

    operator_id: str = Field(description="Operator identifier")


class TokenValidator:
    """Creates and validates HMAC-signed operator tokens."""

    def __init__(self, secret_key: str) -> None:
        self.secret_key = secret_key.encode()

    def _sign(self, payload: str) -> str:
        return hmac.new(self.secret_key, payload.encode(), hashlib.sha256).hexdigest()

    def create_token(self, operator_id: str, expire_minutes: int = 60) -> str:
        """Create a signed token for an operator.

        Args:
            operator_id: Operator identifier (must not contain ':').
            expire_minutes: Token validity in minutes.

        Returns:
            Signed token string.
        """
        if ":" in operator_id:
            raise ValueError("operator_id must not contain ':'")
        expires_at = int(time.time()) + (expire_minutes * 60)
        payload = f"{operator_id}:{expires_at}"
        return f"{payload}:{self._sign(payload)}"

    def validate_token(self, token: str) -> Operator:
        """Validate a token and return the operator it was issued to.

        Raises:
            AuthenticationError: If token is malformed, forged or expired.
        """
        parts = token.split(":")
        if len(parts) != 3:
            raise AuthenticationError("Invalid token format")

        operator_id, expires_at_str, signature = parts
        if not hmac.compare_digest(signature, self._sign(f"{operator_id}:{expires_at_str}")):
            raise AuthenticationError("Invalid token signature")

        try:
            expires_at = int(expires_at_str)
        except ValueError as e:
            raise AuthenticationError(f"Invalid token: {e}") from e
        if time.time() > expires_at:
            raise AuthenticationError("Token has expired")

        return Operator(operator_id=operator_id)


@lru_cache(maxsize=1)
def get_token_validator(secret_key: str) -> TokenValidator:
    """Token validator singleton, rebuilt if the secret key changes."""
    return TokenValidator(secret_key)


def authenticate(
    credentials: HTTPAuthorizationCredentials | None,
    *,
    enabled: bool,
    secret_key: str | None,
) -> Operator | None:
    """Resolve the calling operator.

    Returns None when authentication is disabled.

    Raises:
        AuthenticationError: If auth is enabled and credentials are bad.
    """
    if not enabled:
        return None
    if credentials is None:
        raise AuthenticationError("Missing authentication credentials")
    if not secret_key:
        raise AuthenticationError("Authentication is not configured")

    operator = get_token_validator(secret_key).validate_token(credentials.credentials)
    logger.debug("Operator authenticated", operator_id=operator.operator_id)
    return operator


def issue_operator_token(settings: Settings, operator_id: str) -> str:
    """Issue a token that expires after ``settings.auth_token_expire_minutes``.

    Raises:
        AuthenticationError: If no signing key is configured.
    """
    if not settings.auth_secret_key:
        raise AuthenticationError("Authentication is not configured")
    return get_token_validator(settings.auth_secret_key).create_token(
        operator_id, expire_minutes=settings.auth_token_expire_minutes
    )
