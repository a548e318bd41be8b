"""Data models for the ARC-FX webhook subsystem."""

from .base import generate_id, utc_now
from .webhook import (
    ALL_EVENT_TYPES,
    OPERATOR_STATUSES,
    DeliveryOutcome,
    DeliveryResult,
    EventType,
    SubscriptionStatus,
    WebhookEnvelope,
    WebhookEvent,
    WebhookSubscription,
    WebhookTestResult,
)

__all__ = [
    "ALL_EVENT_TYPES",
    "OPERATOR_STATUSES",
    "DeliveryOutcome",
    "DeliveryResult",
    "EventType",
    "SubscriptionStatus",
    "WebhookEnvelope",
    "WebhookEvent",
    "WebhookSubscription",
    "WebhookTestResult",
    "generate_id",
    "utc_now",
]
