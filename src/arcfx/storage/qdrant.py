"""Qdrant-backed subscription registry.

Subscriptions are stored as payload-only points (a one-dimensional zero
vector) so they survive restarts and can be shared by API replicas.
Per-record locks are process-local: run a single dispatcher process
against one collection.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import UnexpectedResponse

from arcfx.config import settings
from arcfx.exceptions import StorageError
from arcfx.models import WebhookSubscription

from .base import SubscriptionRegistry
from .retry import qdrant_retry

logger = logging.getLogger(__name__)

_VECTOR = [0.0]
_SCROLL_PAGE = 256


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (httpx.HTTPError, UnexpectedResponse) as e:
        raise StorageError(f"Subscription store {operation} failed: {e}") from e


class QdrantSubscriptionRegistry(SubscriptionRegistry):
    """Stores subscriptions in the ``<prefix>_webhooks`` Qdrant collection.

    Updates through ``apply`` (health reports, status changes) are atomic
    only within one process: the record locks are in memory. Run a single
    dispatcher process per collection; API replicas that only register,
    list or remove subscriptions are fine.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            url: Qdrant server URL. Defaults to settings.qdrant_url.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
            client: Pre-built client (e.g. ``AsyncQdrantClient(location=":memory:")``).
        """
        super().__init__()
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Registry not initialized. Call initialize() first.")
        return self._client

    @property
    def collection_name(self) -> str:
        return f"{self._prefix}_webhooks"

    @staticmethod
    def _point_id(subscription_id: str) -> str:
        """Deterministic UUID-format point id for a subscription id."""
        h = hashlib.sha256(subscription_id.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def initialize(self) -> None:
        """Connect and make sure the collection and its indexes exist."""
        if self._client is None:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        with _storage_errors("initialize"):
            await self._ensure_collection()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None

    @qdrant_retry
    async def _ensure_collection(self) -> None:
        collections = await self.client.get_collections()
        if self.collection_name in [c.name for c in collections.collections]:
            return

        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=models.VectorParams(size=len(_VECTOR), distance=models.Distance.DOT),
        )
        for field_name in ("status", "event_types"):
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        logger.info("Created subscription collection %s", self.collection_name)

    @qdrant_retry
    async def _upsert(self, subscription: WebhookSubscription) -> None:
        await self.client.upsert(
            collection_name=self.collection_name,
            points=[
                models.PointStruct(
                    id=self._point_id(subscription.id),
                    vector=_VECTOR,
                    payload=subscription.model_dump(mode="json"),
                )
            ],
        )

    @qdrant_retry
    async def _retrieve(self, subscription_id: str) -> dict[str, Any] | None:
        results = await self.client.retrieve(
            collection_name=self.collection_name,
            ids=[self._point_id(subscription_id)],
            with_payload=True,
        )
        if not results:
            return None
        return results[0].payload

    @qdrant_retry
    async def _scroll(self, scroll_filter: models.Filter | None = None) -> list[dict[str, Any]]:
        payloads: list[dict[str, Any]] = []
        offset: Any = None
        while True:
            points, offset = await self.client.scroll(
                collection_name=self.collection_name,
                scroll_filter=scroll_filter,
                limit=_SCROLL_PAGE,
                offset=offset,
                with_payload=True,
            )
            payloads.extend(p.payload for p in points if p.payload is not None)
            if offset is None:
                return payloads

    @qdrant_retry
    async def _delete_point(self, subscription_id: str) -> None:
        await self.client.delete(
            collection_name=self.collection_name,
            points_selector=models.PointIdsList(points=[self._point_id(subscription_id)]),
        )

    async def _insert(self, subscription: WebhookSubscription) -> None:
        with _storage_errors("insert"):
            await self._upsert(subscription)

    async def _replace(self, subscription: WebhookSubscription) -> None:
        with _storage_errors("update"):
            await self._upsert(subscription)

    async def _delete(self, subscription_id: str) -> bool:
        with _storage_errors("delete"):
            if await self._retrieve(subscription_id) is None:
                return False
            await self._delete_point(subscription_id)
        return True

    async def get(self, subscription_id: str) -> WebhookSubscription | None:
        with _storage_errors("get"):
            payload = await self._retrieve(subscription_id)
        if payload is None:
            return None
        return WebhookSubscription.model_validate(payload)

    async def list(self) -> list[WebhookSubscription]:
        with _storage_errors("list"):
            payloads = await self._scroll()
        return [WebhookSubscription.model_validate(p) for p in payloads]

    async def matching(self, event_type: str) -> list[WebhookSubscription]:
        scroll_filter = models.Filter(
            must=[
                models.FieldCondition(key="status", match=models.MatchValue(value="active")),
                models.FieldCondition(key="event_types", match=models.MatchValue(value=event_type)),
            ]
        )
        with _storage_errors("match"):
            payloads = await self._scroll(scroll_filter)
        subscriptions = [WebhookSubscription.model_validate(p) for p in payloads]
        return [s for s in subscriptions if s.subscribes_to(event_type)]
