"""Wiring of the webhook subsystem from settings."""

from __future__ import annotations

import logging
from typing import Any

from arcfx.config import Settings
from arcfx.storage import (
    InMemorySubscriptionRegistry,
    QdrantSubscriptionRegistry,
    SubscriptionRegistry,
)
from arcfx.webhooks import DeliveryEngine, HealthTracker, WebhookDispatcher

logger = logging.getLogger(__name__)


def get_registry(settings: Settings) -> SubscriptionRegistry:
    """Build the subscription registry selected by ``storage_backend``."""
    if settings.storage_backend == "qdrant":
        return QdrantSubscriptionRegistry(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefix=settings.collection_prefix,
        )
    return InMemorySubscriptionRegistry()


class WebhookService:
    """Registry, delivery engine, health tracker and dispatcher in one place.

    Business code only needs ``service.dispatcher.notify(...)``; the
    management API uses the registry and ``test_delivery``.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        dispatcher: WebhookDispatcher,
        settings: Settings,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.settings = settings

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        registry: SubscriptionRegistry | None = None,
    ) -> WebhookService:
        """Create a WebhookService with dependencies built from settings.

        Example:
            ```python
            async with WebhookService.create() as webhooks:
                webhooks.dispatcher.notify("onPayoutCompleted", {"job_id": job_id})
            ```
        """
        if settings is None:
            settings = Settings()
        if registry is None:
            registry = get_registry(settings)

        engine = DeliveryEngine(
            timeout_seconds=settings.webhook_timeout_seconds,
            max_retries=settings.webhook_max_retries,
            base_backoff_ms=settings.webhook_backoff_base_ms,
            user_agent=settings.webhook_user_agent,
        )
        health = HealthTracker(registry, failure_threshold=settings.webhook_failure_threshold)
        dispatcher = WebhookDispatcher(
            registry,
            engine=engine,
            health=health,
            max_concurrent=settings.webhook_max_concurrent,
        )
        return cls(registry=registry, dispatcher=dispatcher, settings=settings)

    async def initialize(self) -> None:
        await self.registry.initialize()
        logger.info("Webhook service ready (%s registry)", self.settings.storage_backend)

    async def close(self) -> None:
        """Let in-flight deliveries finish, then release the registry."""
        if self.dispatcher.pending:
            logger.info("Waiting for %d webhook tasks", self.dispatcher.pending)
        await self.dispatcher.drain()
        await self.registry.close()

    async def __aenter__(self) -> WebhookService:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
