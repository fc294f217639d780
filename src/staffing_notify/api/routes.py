"""Rotas HTTP: saúde, enfileiramento, drain agendado e monitoramento."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from staffing_notify.adapters.whatsapp.payloads import build_wa_me_link, normalize_phone
from staffing_notify.api.dependencies import (
    get_notification_service,
    get_settings,
    require_internal_token,
)
from staffing_notify.application.notification_service import NotificationService
from staffing_notify.config.settings import Settings
from staffing_notify.domain.errors import InvalidRecipientError, RateLimitExceededError
from staffing_notify.domain.notifications import NotificationType, QueuedNotification
from staffing_notify.observability.logging import get_logger
from staffing_notify.observability.middleware import get_correlation_id

logger = get_logger(__name__)

router = APIRouter()
internal_router = APIRouter(
    prefix="/internal/notifications",
    dependencies=[Depends(require_internal_token)],
)


class NotifyRequest(BaseModel):
    """Corpo de POST /internal/notifications."""

    type: str = Field(min_length=1)
    recipient: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    context_id: str | None = None
    max_attempts: int | None = Field(default=None, ge=1)


def _manual_link(notification: QueuedNotification) -> str | None:
    """Link wa.me para reenvio manual de um WhatsApp em dead-letter."""
    message = notification.payload.get("message")
    if notification.type != NotificationType.WHATSAPP.value or not message:
        return None
    try:
        return build_wa_me_link(normalize_phone(notification.recipient), message)
    except InvalidRecipientError:
        return None


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples para Cloud Run."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}


@internal_router.post("", status_code=status.HTTP_202_ACCEPTED)
def enqueue_notification(
    body: NotifyRequest,
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    """Enfileira uma notificação (descartada se duplicata na janela)."""
    try:
        result = service.notify(
            body.type,
            body.recipient,
            body.payload,
            context_id=body.context_id,
            max_attempts=body.max_attempts,
        )
    except RateLimitExceededError as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="rate_limited",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        ) from exc

    return {
        "ok": True,
        "status": result.status,
        "notification_id": result.notification.id if result.notification else None,
        "correlation_id": get_correlation_id(),
    }


@internal_router.post("/process")
async def process_notifications(
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    """Drain da fila (chamado pelo scheduler)."""
    report = await service.drain()
    return {"ok": True, **report.to_dict(), "correlation_id": get_correlation_id()}


@internal_router.get("/queue")
def list_queue(
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    """Snapshot da fila com contagem por status."""
    return {
        "stats": service.queue.get_stats(),
        "items": [n.to_dict() for n in service.queue.get_queue()],
    }


@internal_router.get("/dead-letter")
def list_dead_letter(
    service: NotificationService = Depends(get_notification_service),
) -> dict[str, Any]:
    """Notificações esgotadas, para ação do operador."""
    dead_letter = service.queue.get_dead_letter_queue()
    if dead_letter:
        logger.warning("Dead-letter notifications pending review", extra={"count": len(dead_letter)})
    return {
        "count": len(dead_letter),
        "items": [{**n.to_dict(), "manual_link": _manual_link(n)} for n in dead_letter],
    }
