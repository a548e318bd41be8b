"""FastAPI router for webhook management endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import HTTPAuthorizationCredentials

from arcfx.exceptions import NotFoundError
from arcfx.logging import bind_context
from arcfx.service import WebhookService

from .auth import Operator, authenticate, security
from .schemas import (
    DeleteWebhookResponse,
    HealthResponse,
    RegisterWebhookRequest,
    StatusUpdateResponse,
    UpdateStatusRequest,
    WebhookListResponse,
    WebhookResponse,
    WebhookTestResponse,
)

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

router = APIRouter()

# Service instance (set by app lifespan)
_service: WebhookService | None = None


def set_service(service: WebhookService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> WebhookService:
    """Dependency to get the WebhookService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[WebhookService, Depends(get_service)]


async def require_operator(
    service: ServiceDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Operator | None:
    """Authenticate the operator when auth is enabled."""
    operator = authenticate(
        credentials,
        enabled=service.settings.is_auth_enabled,
        secret_key=service.settings.auth_secret_key,
    )
    if operator is not None:
        bind_context(operator_id=operator.operator_id)
    return operator


OperatorDep = Annotated[Operator | None, Depends(require_operator)]


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health."""
    if _service is None:
        return HealthResponse(status="unhealthy", version=API_VERSION, registry_connected=False)
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        registry_connected=True,
        pending_deliveries=_service.dispatcher.pending,
    )


@router.post(
    "/webhooks",
    response_model=WebhookResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["webhooks"],
)
async def register_webhook(
    request: RegisterWebhookRequest,
    service: ServiceDep,
    operator: OperatorDep,
) -> WebhookResponse:
    """Register a webhook URL to receive real-time notifications."""
    subscription = await service.registry.register(
        endpoint=request.url,
        event_types=request.events,
        secret=request.secret,
        description=request.description,
    )
    return WebhookResponse.from_subscription(subscription)


@router.get("/webhooks", response_model=WebhookListResponse, tags=["webhooks"])
async def list_webhooks(service: ServiceDep, operator: OperatorDep) -> WebhookListResponse:
    """List all registered webhooks in any status."""
    subscriptions = await service.registry.list()
    subscriptions.sort(key=lambda s: s.created_at)
    webhooks = [WebhookResponse.from_subscription(s) for s in subscriptions]
    return WebhookListResponse(webhooks=webhooks, total=len(webhooks))


@router.get("/webhooks/{webhook_id}", response_model=WebhookResponse, tags=["webhooks"])
async def get_webhook(
    webhook_id: str,
    service: ServiceDep,
    operator: OperatorDep,
) -> WebhookResponse:
    """Get one webhook, including its health state."""
    subscription = await service.registry.get(webhook_id)
    if subscription is None:
        raise NotFoundError("webhook", webhook_id)
    return WebhookResponse.from_subscription(subscription)


@router.delete("/webhooks/{webhook_id}", response_model=DeleteWebhookResponse, tags=["webhooks"])
async def delete_webhook(
    webhook_id: str,
    service: ServiceDep,
    operator: OperatorDep,
) -> DeleteWebhookResponse:
    """Remove a registered webhook."""
    if not await service.registry.remove(webhook_id):
        raise NotFoundError("webhook", webhook_id)
    return DeleteWebhookResponse(success=True, webhook_id=webhook_id, message="Webhook deleted")


@router.patch(
    "/webhooks/{webhook_id}/status",
    response_model=StatusUpdateResponse,
    tags=["webhooks"],
)
async def update_webhook_status(
    webhook_id: str,
    request: UpdateStatusRequest,
    service: ServiceDep,
    operator: OperatorDep,
) -> StatusUpdateResponse:
    """Enable or disable a webhook; also reactivates quarantined ones."""
    updated = await service.registry.set_status(webhook_id, request.status)  # type: ignore[arg-type]
    if not updated:
        raise NotFoundError("webhook", webhook_id)
    logger.info("Webhook %s set to %s", webhook_id, request.status)
    return StatusUpdateResponse(success=True, webhook_id=webhook_id, status=request.status)


@router.post(
    "/webhooks/{webhook_id}/test",
    response_model=WebhookTestResponse,
    tags=["webhooks"],
)
async def test_webhook(
    webhook_id: str,
    response: Response,
    service: ServiceDep,
    operator: OperatorDep,
) -> WebhookTestResponse:
    """Send a test payload to a webhook endpoint and wait for the outcome."""
    if await service.registry.get(webhook_id) is None:
        raise NotFoundError("webhook", webhook_id)

    result = await service.dispatcher.test_delivery(webhook_id)
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return WebhookTestResponse(webhook_id=webhook_id, success=result.success, message=result.message)
