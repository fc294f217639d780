"""Sender de notificações via WhatsApp Cloud API.

Responsabilidade:
- Normalizar destinatário e montar o payload (texto ou botões)
- Enviar via HTTP com bearer token
- Converter respostas de erro em ExternalServiceError (retentável pela fila)
- Nunca logar token, telefone completo ou corpo da mensagem
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from staffing_notify.adapters.whatsapp.payloads import (
    build_confirmation_body,
    build_text_body,
    normalize_phone,
)
from staffing_notify.domain.errors import ExternalServiceError, InvalidPayloadError
from staffing_notify.domain.notifications import QueuedNotification
from staffing_notify.infra.resilience import ResilienceOptions, execute_resilient_api_call
from staffing_notify.observability.logging import get_logger, mask_recipient

if TYPE_CHECKING:
    from staffing_notify.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

SERVICE_NAME = "whatsapp"


class WhatsAppSender:
    """Envia QueuedNotification do tipo "whatsapp".

    Pode ser registrado diretamente como send handler (é chamável) ou via
    NotificationService.register_sender.

    Payload esperado:
        {"message": str, "assignment_id"?: str,
         "confirm_link"?: str, "reject_link"?: str}

    Com assignment_id e os dois links, envia botões de confirmação; se o
    envio interativo falhar, reenvia como texto simples.
    """

    def __init__(
        self,
        api_endpoint: str,
        access_token: str,
        phone_number_id: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._messages_url = f"{api_endpoint.rstrip('/')}/{phone_number_id}/messages"
        self._access_token = access_token
        self._timeout_seconds = timeout_seconds
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_seconds))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Fecha o cliente criado internamente."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> WhatsAppSender:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def __call__(self, notification: QueuedNotification) -> None:
        await self.send(notification.recipient, notification.payload)

    async def send(self, recipient: str, payload: dict[str, Any]) -> str:
        """Envia a mensagem e retorna o id do provedor.

        Raises:
            InvalidRecipientError: telefone inválido
            InvalidPayloadError: payload sem "message"
            ExternalServiceError: API respondeu erro ou sem id de mensagem
        """
        message = payload.get("message")
        if not message:
            raise InvalidPayloadError("WhatsApp payload requires 'message'")

        phone = normalize_phone(recipient)
        assignment_id = payload.get("assignment_id")
        wants_buttons = bool(
            assignment_id and payload.get("confirm_link") and payload.get("reject_link")
        )

        if not wants_buttons:
            return await self._post(build_text_body(phone, message), phone)

        async def send_plain_text() -> str:
            logger.warning(
                "Interactive message failed, retrying as plain text",
                extra={"recipient": mask_recipient(phone)},
            )
            return await self._post(build_text_body(phone, message), phone)

        return await execute_resilient_api_call(
            "whatsapp_interactive",
            lambda: self._post(build_confirmation_body(phone, message, assignment_id), phone),
            ResilienceOptions(max_retries=0, fallback=send_plain_text),
        )

    async def _post(self, body: dict[str, Any], phone: str) -> str:
        client = await self._get_client()
        response = await client.post(
            self._messages_url,
            json=body,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        messages = data.get("messages") or []
        if response.is_success and messages and messages[0].get("id"):
            message_id = messages[0]["id"]
            logger.info(
                "WhatsApp message sent",
                extra={
                    "recipient": mask_recipient(phone),
                    "message_type": body["type"],
                },
            )
            return message_id

        error_message = (data.get("error") or {}).get("message") or f"HTTP {response.status_code}"
        logger.warning(
            "WhatsApp API error",
            extra={
                "recipient": mask_recipient(phone),
                "status_code": response.status_code,
                "message_type": body["type"],
            },
        )
        raise ExternalServiceError(
            error_message,
            service=SERVICE_NAME,
            status_code=response.status_code,
        )


def create_whatsapp_sender(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> WhatsAppSender | None:
    """Cria sender a partir de Settings; None se credenciais ausentes."""
    if settings.validate_whatsapp_config():
        logger.warning("WhatsApp credentials not configured; sender disabled")
        return None

    return WhatsAppSender(
        api_endpoint=settings.whatsapp_api_endpoint,
        access_token=settings.whatsapp_access_token or "",
        phone_number_id=settings.whatsapp_phone_number_id or "",
        http_client=http_client,
        timeout_seconds=settings.whatsapp_request_timeout_seconds,
    )
