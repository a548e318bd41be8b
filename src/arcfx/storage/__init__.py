"""Subscription registry backends for ARC-FX webhooks."""

from .base import RecordLocks, SubscriptionRegistry, build_subscription
from .memory import InMemorySubscriptionRegistry
from .qdrant import QdrantSubscriptionRegistry

__all__ = [
    "InMemorySubscriptionRegistry",
    "QdrantSubscriptionRegistry",
    "RecordLocks",
    "SubscriptionRegistry",
    "build_subscription",
]
