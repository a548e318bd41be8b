"""Webhook delivery with HMAC signatures and exponential backoff retry.

One call to ``DeliveryEngine.attempt`` is one notification to one
subscription: the envelope is serialized once, POSTed up to
``max_retries`` times with waits of ``base * 2**(attempt - 1)`` between
failures, and the terminal outcome is returned. Delivery failures never
raise out of the engine.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic_core import PydanticSerializationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from arcfx.exceptions import DeliveryTransientFailure
from arcfx.models import DeliveryOutcome, DeliveryResult, WebhookEnvelope, WebhookSubscription

from .signing import SIGNATURE_HEADER, compute_signature

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_BACKOFF_MS = 2000
DEFAULT_USER_AGENT = "ARCfx-Webhook/1.0"

Sleep = Callable[[float], Awaitable[None]]


class DeliveryEngine:
    """Sends one envelope to one subscriber, retrying transient failures.

    Holds no persistent state; it is a function of (subscription, envelope)
    to a DeliveryResult.

    Example:
        ```python
        engine = DeliveryEngine(timeout_seconds=10.0)
        result = await engine.attempt(subscription, envelope)
        if result.outcome is DeliveryOutcome.EXHAUSTED:
            ...
        ```
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_backoff_ms: int = DEFAULT_BASE_BACKOFF_MS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the delivery engine.

        Args:
            timeout_seconds: Hard limit for a single POST, connect to last byte.
            max_retries: Attempts per notification (at least 1).
            base_backoff_ms: Wait after the first failure; doubles afterwards.
            user_agent: User-Agent header value.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            sleep: Coroutine used for backoff waits.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._base_backoff_ms = base_backoff_ms
        self._user_agent = user_agent
        self._transport = transport
        self._sleep = sleep

    def build_headers(
        self,
        subscription: WebhookSubscription,
        envelope: WebhookEnvelope,
        body: bytes,
    ) -> dict[str, str]:
        """Headers for every attempt of one delivery sequence."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
            "X-Webhook-Event": envelope.event,
            "X-Webhook-Timestamp": envelope.timestamp,
        }
        if subscription.secret is not None:
            headers[SIGNATURE_HEADER] = compute_signature(body, subscription.secret)
        return headers

    async def attempt(
        self,
        subscription: WebhookSubscription,
        envelope: WebhookEnvelope,
        max_retries: int | None = None,
        base_backoff_ms: int | None = None,
    ) -> DeliveryResult:
        """Deliver an envelope with retry and backoff.

        Args:
            subscription: Recipient.
            envelope: Per-recipient envelope; serialized once for all attempts.
            max_retries: Override the engine's attempt count.
            base_backoff_ms: Override the engine's base backoff.

        Returns:
            DeliveryResult with outcome delivered or exhausted.
        """
        retries = max_retries if max_retries is not None else self._max_retries
        base_ms = base_backoff_ms if base_backoff_ms is not None else self._base_backoff_ms

        url = str(subscription.endpoint)
        attempts = 0

        try:
            body = envelope.to_bytes()
        except PydanticSerializationError as e:
            logger.error("Webhook payload not serializable: %s to %s (%s)", envelope.event, url, e)
            return DeliveryResult(
                subscription_id=subscription.id,
                outcome=DeliveryOutcome.EXHAUSTED,
                attempts=1,
                error=f"Payload not serializable: {e}",
            )
        headers = self.build_headers(subscription, envelope, body)

        def _log_failed_attempt(retry_state: RetryCallState) -> None:
            logger.warning(
                "Webhook attempt %d/%d failed: %s to %s (%s); retrying in %.1fs",
                retry_state.attempt_number,
                retries,
                envelope.event,
                url,
                retry_state.outcome.exception() if retry_state.outcome else "unknown",
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries),
            wait=wait_exponential(multiplier=base_ms / 1000.0, exp_base=2, min=0),
            retry=retry_if_exception_type(DeliveryTransientFailure),
            before_sleep=_log_failed_attempt,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                async for attempt in retrying:
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        status_code = await self._post(client, url, body, headers)
        except DeliveryTransientFailure as e:
            logger.warning(
                "Webhook retries exhausted: %s to %s after %d attempts (%s)",
                envelope.event,
                url,
                attempts,
                e.message,
            )
            return DeliveryResult(
                subscription_id=subscription.id,
                outcome=DeliveryOutcome.EXHAUSTED,
                attempts=max(attempts, 1),
                status_code=e.status_code,
                error=e.message,
            )
        except Exception as e:
            logger.exception("Webhook delivery error: %s to %s", envelope.event, url)
            return DeliveryResult(
                subscription_id=subscription.id,
                outcome=DeliveryOutcome.EXHAUSTED,
                attempts=max(attempts, 1),
                error=f"Unexpected error: {e}",
            )

        logger.info(
            "Webhook delivered: %s to %s (status %d, attempt %d)",
            envelope.event,
            url,
            status_code,
            attempts,
        )
        return DeliveryResult(
            subscription_id=subscription.id,
            outcome=DeliveryOutcome.DELIVERED,
            attempts=attempts,
            status_code=status_code,
        )

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: bytes,
        headers: dict[str, str],
    ) -> int:
        """One POST. Returns the 2xx status or raises DeliveryTransientFailure."""
        try:
            async with asyncio.timeout(self._timeout):
                response = await client.post(
                    url,
                    content=body,
                    headers=headers,
                    timeout=self._timeout,
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise DeliveryTransientFailure(f"Request timeout after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise DeliveryTransientFailure(f"{type(e).__name__}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise DeliveryTransientFailure(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.status_code
