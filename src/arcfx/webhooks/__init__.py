"""Webhook notification system for ARC-FX.

Provides HMAC-signed webhook delivery with exponential backoff retry and
automatic quarantine of endpoints that keep failing.

Example:
    ```python
    from arcfx.storage import InMemorySubscriptionRegistry
    from arcfx.webhooks import WebhookDispatcher

    registry = InMemorySubscriptionRegistry()
    await registry.register("https://partner.example/hooks", ["onSwapFinalized"], "s3cr3t")

    dispatcher = WebhookDispatcher(registry)
    dispatcher.notify("onSwapFinalized", {"tx_hash": "0xabc"})
    ```
"""

from .delivery import DeliveryEngine
from .dispatcher import WebhookDispatcher, dispatch_webhook_event
from .health import HealthTracker, apply_outcome
from .signing import SIGNATURE_HEADER, compute_signature, verify_signature

__all__ = [
    "SIGNATURE_HEADER",
    "DeliveryEngine",
    "HealthTracker",
    "WebhookDispatcher",
    "apply_outcome",
    "compute_signature",
    "dispatch_webhook_event",
    "verify_signature",
]
