"""ARC-FX webhooks: signed, retried notifications for integrators.

Settlement, payout, compliance and cross-chain transfer handlers call
``notify`` after their work is recorded; matching subscribers receive an
HMAC-signed POST, retried with exponential backoff, and endpoints that keep
failing are quarantined automatically.

Quick Start:
    from arcfx import WebhookService

    async with WebhookService.create() as webhooks:
        await webhooks.registry.register(
            "https://partner.example/hooks",
            ["onSwapFinalized", "onPayoutCompleted"],
            secret="s3cr3t",
        )
        webhooks.dispatcher.notify("onSwapFinalized", {"tx_hash": "0xabc"})
"""

__version__ = "0.1.0"

from .config import Settings, settings
from .exceptions import (
    ArcfxError,
    AuthenticationError,
    DeliveryTransientFailure,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .logging import bind_context, clear_context, configure_logging, get_logger, unbind_context
from .models import (
    ALL_EVENT_TYPES,
    DeliveryOutcome,
    DeliveryResult,
    EventType,
    WebhookEnvelope,
    WebhookEvent,
    WebhookSubscription,
    WebhookTestResult,
)
from .service import WebhookService
from .storage import (
    InMemorySubscriptionRegistry,
    QdrantSubscriptionRegistry,
    SubscriptionRegistry,
)
from .webhooks import (
    DeliveryEngine,
    HealthTracker,
    WebhookDispatcher,
    compute_signature,
    verify_signature,
)

__all__ = [
    "ALL_EVENT_TYPES",
    "ArcfxError",
    "AuthenticationError",
    "DeliveryEngine",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryTransientFailure",
    "EventType",
    "HealthTracker",
    "InMemorySubscriptionRegistry",
    "NotFoundError",
    "QdrantSubscriptionRegistry",
    "Settings",
    "StorageError",
    "SubscriptionRegistry",
    "ValidationError",
    "WebhookDispatcher",
    "WebhookEnvelope",
    "WebhookEvent",
    "WebhookService",
    "WebhookSubscription",
    "WebhookTestResult",
    "bind_context",
    "clear_context",
    "compute_signature",
    "configure_logging",
    "get_logger",
    "settings",
    "unbind_context",
    "verify_signature",
]
