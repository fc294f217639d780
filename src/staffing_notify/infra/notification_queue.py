"""Fila de notificações em memória com retry e dead-letter.

Responsabilidades:
- Guardar notificações tipadas até o próximo drain
- Processar entradas pending/failed em ordem de inserção, uma por vez
- Reenfileirar falhas até max_attempts; esgotadas viram dead-letter

A fila é dona exclusiva das entradas; leitores recebem cópias via
get_queue()/get_dead_letter_queue(). Estado por processo (ver DedupStore).
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from typing import Any

from staffing_notify.domain.notifications import (
    NotificationStatus,
    QueuedNotification,
    SendHandler,
)
from staffing_notify.observability.logging import get_logger, mask_recipient
from staffing_notify.utils.clock import Clock, now_ms

logger: logging.Logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


def _snapshot(notification: QueuedNotification) -> QueuedNotification:
    return dataclasses.replace(notification, payload=dict(notification.payload))


class NotificationQueue:
    """Fila de notificações outbound (instância injetada, não singleton)."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._entries: list[QueuedNotification] = []
        self._send_handler: SendHandler | None = None
        self._clock = clock or now_ms
        self._sequence = itertools.count(1)

    def register_send_handler(self, handler: SendHandler) -> None:
        """Instala a função que efetivamente envia.

        Substituir o handler afeta apenas os próximos drains.
        """
        self._send_handler = handler

    def enqueue(
        self,
        notification_type: str,
        recipient: str,
        payload: dict[str, Any],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> QueuedNotification:
        """Adiciona notificação pending e retorna uma cópia da entrada.

        O id é `type:recipient:created_ms:seq`; o sufixo seq evita colisão
        entre enqueues no mesmo milissegundo.
        """
        created_at = self._clock()
        entry = QueuedNotification(
            id=f"{notification_type}:{recipient}:{int(created_at)}:{next(self._sequence)}",
            type=notification_type,
            recipient=recipient,
            payload=dict(payload),
            status=NotificationStatus.PENDING,
            attempts=0,
            max_attempts=max_attempts,
            created_at=created_at,
        )
        self._entries.append(entry)
        logger.info(
            "Notification enqueued",
            extra={
                "notification_type": notification_type,
                "recipient": mask_recipient(recipient),
                "max_attempts": max_attempts,
            },
        )
        return _snapshot(entry)

    async def process_pending_notifications(self) -> None:
        """Processa entradas pending/failed sequencialmente.

        Nunca levanta: falhas do handler viram status/error na entrada.
        Sem handler registrado é no-op (warning).
        """
        handler = self._send_handler
        if handler is None:
            logger.warning("No send handler registered; skipping notification drain")
            return

        candidates = [
            n
            for n in self._entries
            if n.status in (NotificationStatus.PENDING, NotificationStatus.FAILED)
        ]

        for notification in candidates:
            # Outro drain concorrente pode ter pego a entrada durante um await
            if notification.status not in (NotificationStatus.PENDING, NotificationStatus.FAILED):
                continue

            if notification.is_exhausted:
                notification.status = NotificationStatus.FAILED
                logger.error(
                    "Dead-letter: notification exceeded max attempts",
                    extra={"notification_id": self._log_id(notification)},
                )
                continue

            notification.status = NotificationStatus.PROCESSING
            notification.attempts += 1
            notification.last_attempt_at = self._clock()

            try:
                await handler(notification)
            except Exception as exc:
                notification.error = str(exc) or type(exc).__name__
                notification.status = (
                    NotificationStatus.FAILED
                    if notification.is_exhausted
                    else NotificationStatus.PENDING
                )
                logger.error(
                    "Notification send failed",
                    extra={
                        "notification_id": self._log_id(notification),
                        "attempt": notification.attempts,
                        "max_attempts": notification.max_attempts,
                        "dead_letter": notification.status == NotificationStatus.FAILED,
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            notification.status = NotificationStatus.SENT
            logger.info(
                "Notification sent",
                extra={
                    "notification_id": self._log_id(notification),
                    "attempt": notification.attempts,
                },
            )

    def get_dead_letter_queue(self) -> list[QueuedNotification]:
        """Entradas terminais: failed com tentativas esgotadas."""
        return [
            _snapshot(n)
            for n in self._entries
            if n.status == NotificationStatus.FAILED and n.is_exhausted
        ]

    def get_queue(self) -> list[QueuedNotification]:
        """Cópia de todas as entradas (monitoramento/debug)."""
        return [_snapshot(n) for n in self._entries]

    def get_stats(self) -> dict[str, int]:
        """Contagem de entradas por status."""
        stats = {status.value: 0 for status in NotificationStatus}
        for n in self._entries:
            stats[n.status.value] += 1
        return stats

    def clear_queue(self) -> None:
        """Remove todas as entradas (reset/testes)."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _log_id(notification: QueuedNotification) -> str:
        # O id contém o destinatário; logamos apenas tipo + created_ms:seq
        suffix = ":".join(notification.id.rsplit(":", 2)[-2:])
        return f"{notification.type}:{mask_recipient(notification.recipient)}:{suffix}"
