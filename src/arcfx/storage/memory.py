"""Process-local subscription registry."""

from __future__ import annotations

from arcfx.models import WebhookSubscription

from .base import SubscriptionRegistry


class InMemorySubscriptionRegistry(SubscriptionRegistry):
    """Keeps subscriptions in a dict for the lifetime of the process.

    Records are copied on the way in and out so callers can never change
    registry state without going through ``apply``.
    """

    def __init__(self) -> None:
        super().__init__()
        self._subscriptions: dict[str, WebhookSubscription] = {}

    async def _insert(self, subscription: WebhookSubscription) -> None:
        self._subscriptions[subscription.id] = subscription.model_copy(deep=True)

    async def _replace(self, subscription: WebhookSubscription) -> None:
        # A record removed while a mutation was pending stays removed
        if subscription.id in self._subscriptions:
            self._subscriptions[subscription.id] = subscription.model_copy(deep=True)

    async def _delete(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return None
        return subscription.model_copy(deep=True)

    async def list(self) -> list[WebhookSubscription]:
        return [s.model_copy(deep=True) for s in self._subscriptions.values()]

    def __len__(self) -> int:
        return len(self._subscriptions)
