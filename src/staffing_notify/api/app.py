"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from staffing_notify.adapters.whatsapp.sender import create_whatsapp_sender
from staffing_notify.api.routes import internal_router, router
from staffing_notify.application.notification_service import create_notification_service
from staffing_notify.config.settings import Settings, get_settings
from staffing_notify.domain.notifications import NotificationType
from staffing_notify.infra.dedup_factory import create_dedup_store
from staffing_notify.observability.logging import configure_logging, get_logger
from staffing_notify.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


def _create_redis_client(redis_url: str | None):
    """Cria cliente Redis se URL disponível."""
    if not redis_url:
        return None
    import redis

    return redis.from_url(redis_url, decode_responses=True)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name)

    validation_errors: list[str] = []
    validation_errors.extend(settings.validate_dedup_backend())
    validation_errors.extend(settings.validate_retry_policy())
    validation_errors.extend(settings.validate_internal_token())

    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    redis_client = None
    if settings.dedup_backend.lower() == "redis":
        redis_client = _create_redis_client(settings.redis_url)

    dedup_store = create_dedup_store(
        settings.dedup_backend,
        redis_client=redis_client,
        window_ms=settings.dedup_window_ms,
    )
    service = create_notification_service(settings, dedup_store)

    whatsapp_sender = create_whatsapp_sender(settings)
    if whatsapp_sender is not None:
        service.register_sender(NotificationType.WHATSAPP.value, whatsapp_sender)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if whatsapp_sender is not None:
            await whatsapp_sender.close()

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=lifespan)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(router)
    app.include_router(internal_router)

    app.state.settings = settings
    app.state.notification_service = service

    logger.info(
        "Application created",
        extra={"environment": settings.environment, "dedup_backend": settings.dedup_backend},
    )
    return app
