"""Subscription registry contract.

The registry exclusively owns subscription records. Dispatcher and health
tracker only see copies and change state through ``apply``, which runs a
read-modify-write under a lock scoped to a single subscription.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from typing import Any

import pydantic

from arcfx.exceptions import ValidationError
from arcfx.models import OPERATOR_STATUSES, SubscriptionStatus, WebhookSubscription

logger = logging.getLogger(__name__)

Mutation = Callable[[WebhookSubscription], WebhookSubscription]


class RecordLocks:
    """Asyncio locks, one per subscription id, held only while in use.

    Unrelated subscriptions never wait on each other. A lock is created by
    the first caller for an id and dropped when its last holder or waiter
    leaves, so ids that are never seen again leave nothing behind.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def build_subscription(
    endpoint: str,
    event_types: Iterable[str],
    secret: str | None = None,
    description: str | None = None,
) -> WebhookSubscription:
    """Validate registration input and build a new active subscription.

    Raises:
        ValidationError: If the endpoint is not a well-formed http(s) URL,
            an event type is unknown, or no event type was given.
    """
    try:
        return WebhookSubscription(
            endpoint=endpoint,  # type: ignore[arg-type]
            event_types=list(event_types),  # type: ignore[arg-type]
            secret=secret,
            description=description,
        )
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else "subscription"
        raise ValidationError(field, first["msg"]) from e


class SubscriptionRegistry(ABC):
    """Storage-pluggable store of webhook subscriptions.

    Subclasses implement raw persistence (``_insert``, ``_replace``,
    ``_delete``, ``get``, ``list``); validation, per-record locking and
    the operator status rules live here.
    """

    def __init__(self) -> None:
        self._locks = RecordLocks()

    async def initialize(self) -> None:
        """Prepare the backing store. No-op by default."""

    async def close(self) -> None:
        """Release the backing store. No-op by default."""

    async def __aenter__(self) -> SubscriptionRegistry:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @abstractmethod
    async def _insert(self, subscription: WebhookSubscription) -> None:
        """Persist a brand new subscription."""

    @abstractmethod
    async def _replace(self, subscription: WebhookSubscription) -> None:
        """Overwrite an existing subscription record."""

    @abstractmethod
    async def _delete(self, subscription_id: str) -> bool:
        """Delete a record, returning whether it existed."""

    @abstractmethod
    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        """Get a subscription by id, or None if unknown."""

    @abstractmethod
    async def list(self) -> list[WebhookSubscription]:
        """All subscriptions in any status. Order is not guaranteed."""

    async def register(
        self,
        endpoint: str,
        event_types: Iterable[str],
        secret: str | None = None,
        description: str | None = None,
    ) -> WebhookSubscription:
        """Register a new subscription.

        Args:
            endpoint: URL to POST events to.
            event_types: Event types to subscribe to.
            secret: Optional shared secret; without one deliveries are unsigned.
            description: Optional operator note.

        Returns:
            The stored subscription, status active with a zero failure count.

        Raises:
            ValidationError: On a malformed URL or unknown event type.
        """
        subscription = build_subscription(endpoint, event_types, secret, description)
        await self._insert(subscription)
        logger.info(
            "Webhook registered: %s for events %s",
            subscription.id,
            ", ".join(subscription.event_types),
        )
        return subscription

    async def matching(self, event_type: str) -> list[WebhookSubscription]:
        """Active subscriptions whose event types contain ``event_type``."""
        return [s for s in await self.list() if s.subscribes_to(event_type)]

    async def remove(self, subscription_id: str) -> bool:
        """Delete a subscription. Returns True if a record existed."""
        async with self._locks.hold(subscription_id):
            removed = await self._delete(subscription_id)
        if removed:
            logger.info("Webhook removed: %s", subscription_id)
        return removed

    async def apply(
        self,
        subscription_id: str,
        mutate: Mutation,
    ) -> WebhookSubscription | None:
        """Atomically read, transform and write back one subscription.

        Args:
            subscription_id: Record to update.
            mutate: Receives a private copy and returns the new state.

        Returns:
            The stored result, or None if the id is unknown.
        """
        async with self._locks.hold(subscription_id):
            current = await self.get(subscription_id)
            if current is None:
                return None
            updated = mutate(current)
            await self._replace(updated)
            return updated

    async def set_status(self, subscription_id: str, status: SubscriptionStatus) -> bool:
        """Operator-driven status change.

        Only ``active`` and ``inactive`` are valid targets; ``failed`` is
        reserved for the health tracker. Setting a failed subscription
        back to active is the manual reactivation path.

        Returns:
            False if the id is unknown.

        Raises:
            ValidationError: If ``status`` is not an operator status.
        """
        if status not in OPERATOR_STATUSES:
            raise ValidationError(
                "status", f"must be one of {', '.join(OPERATOR_STATUSES)}, got {status!r}"
            )

        def _set(subscription: WebhookSubscription) -> WebhookSubscription:
            if subscription.status != status:
                logger.info(
                    "Webhook %s status %s -> %s", subscription.id, subscription.status, status
                )
            subscription.status = status
            return subscription

        return await self.apply(subscription_id, _set) is not None
