"""Logging estruturado (JSON) do serviço de notificações.

Todo record recebe `service` e `correlation_id`. Destinatários nunca vão
para o log em claro: use `mask_recipient`. Payloads de mensagem e tokens não
são logados.
"""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from staffing_notify.observability.middleware import get_correlation_id

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(correlation_id)s %(service)s"

# Bibliotecas de transporte logam URL e headers em DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore")


class ServiceContextFilter(logging.Filter):
    """Anexa service e correlation_id (respeitando um id passado em `extra`)."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        record.service = self._service_name
        return True


def configure_logging(level: str, service_name: str) -> None:
    """Instala um único handler JSON no root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(
        JsonFormatter(LOG_FORMAT, rename_fields={"levelname": "level", "name": "logger"})
    )
    handler.addFilter(ServiceContextFilter(service_name))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def mask_recipient(recipient: str) -> str:
    """Mascara telefone/e-mail mantendo os 4 últimos caracteres.

    "34600000000" -> "***0000"; valores curtos viram "***".
    """
    if len(recipient) <= 4:
        return "***"
    return f"***{recipient[-4:]}"


def log_fallback(
    logger: logging.Logger,
    component: str,
    reason: str | None = None,
    elapsed_ms: float | None = None,
) -> None:
    """Registra que um componente caiu no fallback (ex.: "whatsapp_interactive")."""
    extra: dict[str, object] = {"fallback_used": True, "component": component}
    if reason:
        extra["reason"] = reason
    if elapsed_ms is not None:
        extra["elapsed_ms"] = elapsed_ms
    logger.info("Fallback applied for %s", component, extra=extra)
