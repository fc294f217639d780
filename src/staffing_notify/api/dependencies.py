"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from staffing_notify.application.notification_service import NotificationService
from staffing_notify.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_notification_service(request: Request) -> NotificationService:
    """Retorna o serviço de notificações ativo."""

    return request.app.state.notification_service


def require_internal_token(request: Request) -> None:
    """Valida token interno enviado pelo scheduler/worker.

    Sem token configurado, só development aceita a chamada.
    """
    settings: Settings = request.app.state.settings
    expected = settings.internal_task_token

    if not expected:
        if settings.is_development:
            return
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="missing_internal_token",
        )

    if request.headers.get(settings.internal_token_header) == expected:
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="unauthorized_internal_call",
    )
