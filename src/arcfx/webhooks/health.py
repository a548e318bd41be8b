"""Subscription health tracking and quarantine.

The only code path that touches ``failure_count`` or moves a
subscription to ``failed``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from arcfx.models import DeliveryOutcome, WebhookSubscription, utc_now

if TYPE_CHECKING:
    from arcfx.storage import SubscriptionRegistry

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 10


def apply_outcome(
    subscription: WebhookSubscription,
    outcome: DeliveryOutcome,
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
    now: datetime | None = None,
) -> WebhookSubscription:
    """Apply one terminal delivery outcome to a subscription in place.

    Delivered resets the failure count. Exhausted increments it and
    quarantines the subscription once the threshold is reached. A failed
    subscription is never reactivated here.
    """
    subscription.last_triggered_at = now or utc_now()

    if outcome is DeliveryOutcome.DELIVERED:
        subscription.failure_count = 0
        return subscription

    subscription.failure_count += 1
    if subscription.failure_count >= failure_threshold and subscription.status != "failed":
        subscription.status = "failed"
        logger.error(
            "Webhook %s disabled after %d consecutive failures: %s",
            subscription.id,
            subscription.failure_count,
            subscription.endpoint,
        )
    return subscription


class HealthTracker:
    """Records delivery outcomes against the registry.

    Each report is one atomic read-modify-write of a single subscription,
    so concurrent notifications to the same endpoint cannot lose updates.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self._registry = registry
        self._failure_threshold = failure_threshold

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    async def report(
        self,
        subscription_id: str,
        outcome: DeliveryOutcome,
    ) -> WebhookSubscription | None:
        """Record the terminal outcome of one notification.

        Returns:
            The updated subscription, or None if it was removed meanwhile.
        """
        updated = await self._registry.apply(
            subscription_id,
            lambda s: apply_outcome(s, outcome, self._failure_threshold),
        )
        if updated is None:
            logger.info(
                "Dropping %s outcome for removed webhook %s", outcome.value, subscription_id
            )
        return updated
