"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from arcfx.models import WebhookSubscription


class RegisterWebhookRequest(BaseModel):
    """Request body for registering a webhook.

    URL and event types are validated by the registry so that bad input
    comes back as a 400 with the failing field.

    Attributes:
        url: Endpoint to POST events to.
        events: Event types to subscribe to.
        secret: Optional shared secret for HMAC-SHA256 signatures.
        description: Optional operator note.
    """

    model_config = ConfigDict(extra="forbid")

    url: str = Field(description="Endpoint to POST events to")
    events: list[str] = Field(description="Event types to subscribe to")
    secret: str | None = Field(default=None, description="Shared secret for signatures")
    description: str | None = Field(default=None, max_length=500)


class UpdateStatusRequest(BaseModel):
    """Request body for an operator status change."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(description="New status: active or inactive")


class WebhookResponse(BaseModel):
    """A webhook subscription as shown to operators. Never includes the secret."""

    webhook_id: str
    url: str
    events: list[str]
    status: Literal["active", "inactive", "failed"]
    has_secret: bool
    created_at: datetime
    last_triggered: datetime | None = None
    failure_count: int = 0
    description: str | None = None

    @classmethod
    def from_subscription(cls, subscription: WebhookSubscription) -> WebhookResponse:
        return cls(
            webhook_id=subscription.id,
            url=str(subscription.endpoint),
            events=list(subscription.event_types),
            status=subscription.status,
            has_secret=subscription.has_secret,
            created_at=subscription.created_at,
            last_triggered=subscription.last_triggered_at,
            failure_count=subscription.failure_count,
            description=subscription.description,
        )


class WebhookListResponse(BaseModel):
    webhooks: list[WebhookResponse]
    total: int


class DeleteWebhookResponse(BaseModel):
    success: bool
    webhook_id: str
    message: str


class StatusUpdateResponse(BaseModel):
    success: bool
    webhook_id: str
    status: str


class WebhookTestResponse(BaseModel):
    """Result of an operator test delivery."""

    webhook_id: str
    success: bool
    message: str


class HealthResponse(BaseModel):
    """Response for health check endpoint.

    Attributes:
        status: Service status (healthy, unhealthy).
        version: API version.
        registry_connected: Whether the subscription registry is ready.
        pending_deliveries: Webhook tasks currently in flight.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "unhealthy"]
    version: str
    registry_connected: bool
    pending_deliveries: int = 0
