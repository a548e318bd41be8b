"""Fire-and-forget fan-out of events to webhook subscribers.

``notify`` schedules work and returns; every matching subscription gets
its own task that owns its retry loop and reports its own outcome to the
health tracker. Nothing a subscriber does can reach the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine, Mapping
from typing import Any

import pydantic
from pydantic_core import PydanticSerializationError

from arcfx.exceptions import ValidationError
from arcfx.models import (
    DeliveryResult,
    EventType,
    WebhookEnvelope,
    WebhookEvent,
    WebhookSubscription,
    WebhookTestResult,
)
from arcfx.storage import SubscriptionRegistry

from .delivery import DeliveryEngine
from .health import HealthTracker

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Dispatches events to all active subscriptions of their type.

    Example:
        ```python
        dispatcher = WebhookDispatcher(registry)

        # From a settlement handler, after the swap is recorded
        dispatcher.notify("onSwapFinalized", {"tx_hash": tx_hash})

        # Operator diagnostics
        result = await dispatcher.test_delivery(subscription_id)

        # On shutdown
        await dispatcher.drain()
        ```
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        engine: DeliveryEngine | None = None,
        health: HealthTracker | None = None,
        max_concurrent: int | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Subscription registry to resolve recipients from.
            engine: Delivery engine. Defaults to DeliveryEngine().
            health: Health tracker. Defaults to one bound to ``registry``.
            max_concurrent: Optional cap on delivery sequences in flight.
                None means unbounded.
        """
        self._registry = registry
        self._engine = engine or DeliveryEngine()
        self._health = health or HealthTracker(registry)
        self._semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def pending(self) -> int:
        """Number of fan-out and delivery tasks still running."""
        return len(self._tasks)

    def notify(self, event_type: EventType, payload: Mapping[str, Any] | None = None) -> None:
        """Broadcast an event without waiting for any delivery.

        Must be called from code running inside the event loop. Returns as
        soon as fan-out is scheduled.

        Raises:
            ValidationError: If ``event_type`` is not a known event type,
                or the payload cannot be serialized to JSON.
        """
        try:
            event = WebhookEvent(event=event_type, data=dict(payload or {}))
        except pydantic.ValidationError as e:
            raise ValidationError("event", f"unknown event type {event_type!r}") from e
        self.dispatch_event(event)

    def dispatch_event(self, event: WebhookEvent) -> None:
        """Schedule fan-out of a prebuilt event.

        Raises:
            ValidationError: If the payload cannot be serialized to JSON.
        """
        _check_serializable(event)
        self._spawn(self._fan_out(event), name=f"webhook-fanout-{event.id}")

    async def test_delivery(
        self,
        subscription_id: str,
        event: WebhookEvent | None = None,
    ) -> WebhookTestResult:
        """Run one full delivery sequence and report its outcome.

        Works for any subscription status. The outcome is also recorded
        by the health tracker, like any other delivery.

        Args:
            subscription_id: Subscription to test.
            event: Event to send. Defaults to a synthetic onSwapFinalized.

        Returns:
            WebhookTestResult with success flag and message.

        Raises:
            ValidationError: If the event payload cannot be serialized to JSON.
        """
        if event is None:
            event = WebhookEvent(
                event="onSwapFinalized",
                data={"test": True, "message": "This is a test webhook"},
            )
        _check_serializable(event)

        subscription = await self._registry.get(subscription_id)
        if subscription is None:
            return WebhookTestResult(success=False, message="Webhook not found")

        result = await self._engine.attempt(
            subscription,
            WebhookEnvelope.for_subscription(event, subscription.id),
        )
        await self._health.report(subscription.id, result.outcome)

        if result.success:
            return WebhookTestResult(success=True, message="Test webhook delivered successfully")
        return WebhookTestResult(
            success=False,
            message=f"Failed to deliver after {result.attempts} attempts: {result.error}",
        )

    async def drain(self) -> None:
        """Wait until every scheduled fan-out and delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fan_out(self, event: WebhookEvent) -> None:
        try:
            subscriptions = await self._registry.matching(event.event)
        except Exception:
            logger.exception("Could not resolve webhooks for event %s (%s)", event.event, event.id)
            return

        if not subscriptions:
            logger.debug("No webhooks registered for event: %s", event.event)
            return

        logger.info("Triggering %d webhooks for: %s", len(subscriptions), event.event)
        for subscription in subscriptions:
            self._spawn(
                self._deliver(subscription, event),
                name=f"webhook-delivery-{subscription.id}-{event.id}",
            )

    async def _deliver(
        self,
        subscription: WebhookSubscription,
        event: WebhookEvent,
    ) -> DeliveryResult | None:
        envelope = WebhookEnvelope.for_subscription(event, subscription.id)
        try:
            async with self._semaphore or contextlib.nullcontext():
                result = await self._engine.attempt(subscription, envelope)
            await self._health.report(subscription.id, result.outcome)
        except Exception:
            logger.exception(
                "Webhook delivery task failed: %s to %s", event.event, subscription.endpoint
            )
            return None
        return result


def _check_serializable(event: WebhookEvent) -> None:
    try:
        event.model_dump_json()
    except PydanticSerializationError as e:
        raise ValidationError("data", f"payload is not JSON serializable: {e}") from e


def dispatch_webhook_event(
    dispatcher: WebhookDispatcher,
    event_type: EventType,
    **data: object,
) -> None:
    """Convenience wrapper: ``notify`` with the payload given as keywords.

    Example:
        ```python
        dispatch_webhook_event(dispatcher, "onPayoutCompleted", job_id=job_id, status="completed")
        ```
    """
    dispatcher.notify(event_type, data)
