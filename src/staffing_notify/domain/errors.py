"""Hierarquia de erros do domínio de notificações.

Responsabilidades:
- Classificar falhas de envio (serviço externo, destinatário, rate limit)
- Carregar metadados úteis para retry/auditoria sem expor PII
"""

from __future__ import annotations


class NotifyError(Exception):
    """Erro base do staffing_notify."""

    pass


class ExternalServiceError(NotifyError):
    """Falha ao chamar serviço externo (WhatsApp, Gmail, ...)."""

    def __init__(
        self,
        message: str,
        service: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class InvalidRecipientError(NotifyError):
    """Destinatário em formato inválido (telefone, e-mail)."""

    pass


class UnsupportedNotificationTypeError(NotifyError):
    """Não há sender registrado para o tipo de notificação."""

    pass


class RateLimitExceededError(NotifyError):
    """Destinatário excedeu o limite de envios da janela."""

    def __init__(self, message: str, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class DedupStoreError(NotifyError):
    """Backend de deduplicação indisponível (fail-closed)."""

    pass


class InvalidPayloadError(NotifyError):
    """Payload da notificação sem campos obrigatórios."""

    pass
