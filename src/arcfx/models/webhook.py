"""Webhook models for integrator notifications.

Provides subscriptions, broadcast events, the wire envelope and
delivery outcomes for notifying integrators about settlement, payout,
compliance and cross-chain transfer events.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from .base import generate_id, utc_now

# Event types that can trigger webhooks
EventType = Literal[
    "onSwapFinalized",
    "onPayoutCompleted",
    "onComplianceFlag",
    "onCCTPTransferInitiated",
    "onCCTPTransferCompleted",
]

ALL_EVENT_TYPES: list[EventType] = [
    "onSwapFinalized",
    "onPayoutCompleted",
    "onComplianceFlag",
    "onCCTPTransferInitiated",
    "onCCTPTransferCompleted",
]

# "failed" is reached only through the health tracker's quarantine rule
SubscriptionStatus = Literal["active", "inactive", "failed"]

OPERATOR_STATUSES: tuple[SubscriptionStatus, ...] = ("active", "inactive")


class DeliveryOutcome(str, Enum):
    """Terminal result of one notification to one subscription."""

    DELIVERED = "delivered"  # Some attempt got a 2xx
    EXHAUSTED = "exhausted"  # Every attempt failed


class WebhookSubscription(BaseModel):
    """A registered webhook endpoint and its health state.

    Attributes:
        id: Unique identifier, generated at registration.
        endpoint: URL that receives POSTed events.
        event_types: Event types this subscription wants (exact match).
        secret: Shared secret for HMAC-SHA256 signatures. None means unsigned.
        status: active, inactive (operator-disabled) or failed (quarantined).
        failure_count: Consecutive notifications whose retries were exhausted.
        last_triggered_at: When the last delivery sequence finished.
        created_at: When the subscription was registered.
        description: Optional operator note.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"), frozen=True)
    endpoint: HttpUrl = Field(description="Endpoint that receives webhook POSTs")
    event_types: list[EventType] = Field(
        min_length=1,
        description="Event types to subscribe to",
    )
    secret: str | None = Field(default=None, description="Shared secret for signatures")
    status: SubscriptionStatus = Field(default="active", description="Subscription health")
    failure_count: int = Field(default=0, ge=0, description="Consecutive failed notifications")
    last_triggered_at: datetime | None = Field(
        default=None,
        description="When the most recent delivery sequence finished",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        frozen=True,
        description="When the subscription was registered",
    )
    description: str | None = Field(default=None, description="Human-readable description")

    @field_validator("event_types")
    @classmethod
    def _dedupe_event_types(cls, value: list[EventType]) -> list[EventType]:
        return list(dict.fromkeys(value))

    @field_validator("secret", mode="before")
    @classmethod
    def _blank_secret_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value:
            return None
        return value

    @property
    def has_secret(self) -> bool:
        """Whether deliveries to this subscription are signed."""
        return self.secret is not None

    def subscribes_to(self, event_type: str) -> bool:
        """Check if this subscription should receive the given event type."""
        return self.status == "active" and event_type in self.event_types


class WebhookEvent(BaseModel):
    """A business event to broadcast to subscribers.

    Attributes:
        id: Unique identifier for this event.
        event: Event type.
        timestamp: Dispatch time, copied into every envelope.
        data: Event-specific payload, passed through uninterpreted.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("evt"))
    event: EventType = Field(description="Event type")
    timestamp: datetime = Field(default_factory=utc_now, description="Dispatch time")
    data: dict[str, Any] = Field(default_factory=dict, description="Event-specific payload")

    @classmethod
    def for_swap_finalized(
        cls,
        reference_id: str,
        tx_hash: str,
        from_currency: str,
        to_currency: str,
        from_amount: str,
        to_amount: str,
        block_number: int | None = None,
    ) -> "WebhookEvent":
        """Create event for a swap settlement logged on-chain."""
        return cls(
            event="onSwapFinalized",
            data={
                "reference_id": reference_id,
                "tx_hash": tx_hash,
                "from_currency": from_currency,
                "to_currency": to_currency,
                "from_amount": from_amount,
                "to_amount": to_amount,
                "block_number": block_number,
            },
        )

    @classmethod
    def for_payout_completed(
        cls,
        job_id: str,
        status: str,
        funding_currency: str,
        payouts_count: int,
        successful_count: int,
        failed_count: int,
    ) -> "WebhookEvent":
        """Create event for a finished batch payout job."""
        return cls(
            event="onPayoutCompleted",
            data={
                "job_id": job_id,
                "status": status,
                "funding_currency": funding_currency,
                "payouts_count": payouts_count,
                "successful_count": successful_count,
                "failed_count": failed_count,
            },
        )

    @classmethod
    def for_compliance_flag(
        cls,
        address: str,
        risk_level: str,
        reasons: list[str],
        reference_id: str | None = None,
    ) -> "WebhookEvent":
        """Create event for a compliance screening hit."""
        return cls(
            event="onComplianceFlag",
            data={
                "address": address,
                "risk_level": risk_level,
                "reasons": reasons,
                "reference_id": reference_id,
            },
        )

    @classmethod
    def for_cctp_transfer_initiated(
        cls,
        transfer_id: str,
        source_chain: str,
        destination_chain: str,
        amount: str,
        burn_tx_hash: str,
    ) -> "WebhookEvent":
        """Create event for a cross-chain transfer whose burn was submitted."""
        return cls(
            event="onCCTPTransferInitiated",
            data={
                "transfer_id": transfer_id,
                "source_chain": source_chain,
                "destination_chain": destination_chain,
                "amount": amount,
                "burn_tx_hash": burn_tx_hash,
            },
        )

    @classmethod
    def for_cctp_transfer_completed(
        cls,
        transfer_id: str,
        destination_chain: str,
        amount: str,
        mint_tx_hash: str,
    ) -> "WebhookEvent":
        """Create event for a cross-chain transfer minted on the destination chain."""
        return cls(
            event="onCCTPTransferCompleted",
            data={
                "transfer_id": transfer_id,
                "destination_chain": destination_chain,
                "amount": amount,
                "mint_tx_hash": mint_tx_hash,
            },
        )


class WebhookEnvelope(BaseModel):
    """Request body sent to one subscriber for one event.

    The timestamp is kept as the ISO-8601 string that also travels in the
    X-Webhook-Timestamp header, so body and header always agree.
    """

    model_config = ConfigDict(extra="forbid")

    event: EventType
    timestamp: str
    data: dict[str, Any] = Field(default_factory=dict)
    subscription_id: str

    @classmethod
    def for_subscription(cls, event: WebhookEvent, subscription_id: str) -> "WebhookEnvelope":
        """Build the per-recipient envelope for an event."""
        return cls(
            event=event.event,
            timestamp=event.timestamp.isoformat(),
            data=event.data,
            subscription_id=subscription_id,
        )

    def to_bytes(self) -> bytes:
        """Serialize to the exact bytes that are sent and signed."""
        return self.model_dump_json().encode("utf-8")


class DeliveryResult(BaseModel):
    """Result of a full attempt sequence against one subscription.

    Attributes:
        subscription_id: Subscription the envelope was sent to.
        outcome: delivered or exhausted.
        attempts: Number of HTTP attempts made.
        status_code: Status of the last response received, if any.
        error: Last failure message, if the final attempt failed.
    """

    model_config = ConfigDict(extra="forbid")

    subscription_id: str
    outcome: DeliveryOutcome
    attempts: int = Field(ge=1)
    status_code: int | None = None
    error: str | None = None
    completed_at: datetime = Field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED


class WebhookTestResult(BaseModel):
    """Synchronous answer to an operator's test delivery."""

    success: bool
    message: str


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
]
