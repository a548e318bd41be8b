"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from arcfx.storage import InMemorySubscriptionRegistry
from arcfx.webhooks import DeliveryEngine, HealthTracker, WebhookDispatcher


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeSubscriber:
    """httpx.MockTransport handler that records requests per URL.

    Responds with the status configured for the URL (200 by default).
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.statuses: dict[str, int] = {}

    def respond(self, url: str, status_code: int) -> None:
        self.statuses[url] = status_code

    def requests_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.statuses.get(str(request.url), 200), text="ok")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def subscriber() -> FakeSubscriber:
    return FakeSubscriber()


@pytest.fixture
def registry() -> InMemorySubscriptionRegistry:
    return InMemorySubscriptionRegistry()


@pytest.fixture
def make_engine(
    subscriber: FakeSubscriber, recording_sleep: RecordingSleep
) -> Callable[..., DeliveryEngine]:
    """Build a DeliveryEngine that talks to the fake subscriber and never sleeps."""

    def _make(**kwargs: object) -> DeliveryEngine:
        kwargs.setdefault("transport", subscriber.transport)
        kwargs.setdefault("sleep", recording_sleep)
        return DeliveryEngine(**kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def dispatcher(
    registry: InMemorySubscriptionRegistry,
    make_engine: Callable[..., DeliveryEngine],
) -> WebhookDispatcher:
    return WebhookDispatcher(
        registry,
        engine=make_engine(),
        health=HealthTracker(registry, failure_threshold=10),
    )
