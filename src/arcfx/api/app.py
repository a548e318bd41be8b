"""FastAPI application for the ARC-FX webhook management API."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from arcfx.config import Settings
from arcfx.exceptions import ArcfxError, AuthenticationError
from arcfx.logging import clear_context, configure_logging, get_logger
from arcfx.service import WebhookService

from .router import API_VERSION, router, set_service

logger = get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Answer every ArcfxError with its ``http_status`` and ``to_dict()`` body.

    Authentication failures also get a ``WWW-Authenticate: Bearer`` challenge.
    """

    @app.exception_handler(ArcfxError)
    async def arcfx_error_handler(request: Request, exc: ArcfxError) -> JSONResponse:
        if exc.http_status >= 500:
            log = logger.error
        elif exc.http_status == 404:
            log = logger.info
        else:
            log = logger.warning
        log(
            "Request rejected",
            code=exc.code,
            error=exc.message,
            status=exc.http_status,
            path=request.url.path,
            **exc.details(),
        )

        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict(), headers=headers)


def _lifespan(settings: Settings) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the webhook service on startup; drain deliveries on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(level=settings.log_level, format=settings.log_format)

        async with WebhookService.create(settings) as service:
            app.state.webhooks = service
            set_service(service)
            logger.info(
                "Webhook API ready",
                storage_backend=settings.storage_backend,
                auth_enabled=settings.is_auth_enabled,
                max_retries=settings.webhook_max_retries,
            )
            try:
                yield
            finally:
                set_service(None)
                logger.info("Webhook API shutting down", pending=service.dispatcher.pending)

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the management API.

    Args:
        settings: Settings to use; read from the environment when omitted.

    Example:
        ```bash
        uvicorn arcfx.api:create_app --factory --port 4000
        ```
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="ARC-FX Webhooks",
        description="Webhook subscriptions and signed event delivery for ARC-FX.",
        version=API_VERSION,
        lifespan=_lifespan(settings),
    )

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_methods=settings.cors_allow_methods,
            allow_headers=["Authorization", "Content-Type"],
        )

    @app.middleware("http")
    async def reset_log_context(request: Request, call_next):  # type: ignore[no-untyped-def]
        clear_context()
        return await call_next(request)

    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")
    return app
