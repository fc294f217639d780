"""Serviço de notificações — composição do núcleo de entrega confiável.

Fluxo:
    notify():  rate limit -> idempotency key -> is_duplicate -> enqueue
    drain():   process_pending_notifications -> sender por tipo, envolvido
               por execute_resilient_api_call -> evicção do cache de dedup

O serviço não conhece HTTP nem canais concretos: senders são registrados
por tipo ("whatsapp", "email", ...).
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from staffing_notify.application.services.dedup_service import generate_idempotency_key
from staffing_notify.domain.dedup import DedupStore
from staffing_notify.domain.errors import (
    RateLimitExceededError,
    UnsupportedNotificationTypeError,
)
from staffing_notify.domain.notifications import NotificationStatus, QueuedNotification
from staffing_notify.infra.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from staffing_notify.infra.notification_queue import DEFAULT_MAX_ATTEMPTS, NotificationQueue
from staffing_notify.infra.rate_limit import FixedWindowRateLimiter
from staffing_notify.infra.resilience import (
    ResilienceOptions,
    Sleep,
    execute_resilient_api_call,
)
from staffing_notify.observability.logging import get_logger, mask_recipient
from staffing_notify.observability.timing import timed

if TYPE_CHECKING:
    from staffing_notify.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

Sender = Callable[[QueuedNotification], Awaitable[Any]]


@dataclass(slots=True, frozen=True)
class NotifyResult:
    """Resultado de notify(): enfileirada ou descartada como duplicata."""

    status: Literal["enqueued", "duplicate"]
    idempotency_key: str
    notification: QueuedNotification | None = None


@dataclass(slots=True, frozen=True)
class DrainReport:
    """Resumo de um drain da fila."""

    processed: int
    sent: int
    pending: int
    failed: int
    dead_letter: int
    evicted: int = 0

    def to_dict(self) -> dict[str, int]:
        return dataclasses.asdict(self)


class NotificationService:
    """Orquestra dedup, fila, retry resiliente e rate limit."""

    def __init__(
        self,
        dedup_store: DedupStore,
        queue: NotificationQueue,
        *,
        dedup_window_ms: int = DedupStore.DEFAULT_WINDOW_MS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_options: ResilienceOptions[Any] | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._dedup = dedup_store
        self._queue = queue
        self._dedup_window_ms = dedup_window_ms
        self._max_attempts = max_attempts
        # Sem fallback: a falha precisa chegar à fila para contar tentativa
        self._retry_options = dataclasses.replace(
            retry_options or ResilienceOptions(), fallback=None
        )
        self._rate_limiter = rate_limiter
        self._sleep = sleep
        self._senders: dict[str, Sender] = {}
        self._queue.register_send_handler(self._dispatch)

    @property
    def queue(self) -> NotificationQueue:
        return self._queue

    @property
    def dedup_store(self) -> DedupStore:
        return self._dedup

    def register_sender(self, notification_type: str, sender: Sender) -> None:
        """Registra (ou substitui) o sender de um tipo de notificação."""
        self._senders[notification_type] = sender
        logger.info("Sender registered", extra={"notification_type": notification_type})

    def notify(
        self,
        notification_type: str,
        recipient: str,
        payload: dict[str, Any],
        context_id: str | None = None,
        max_attempts: int | None = None,
    ) -> NotifyResult:
        """Enfileira a notificação, a menos que seja duplicata na janela.

        Raises:
            RateLimitExceededError: destinatário acima do limite (a chave de
                dedup não é marcada nesse caso)
        """
        if self._rate_limiter is not None:
            limit = self._rate_limiter.check(f"{notification_type}:{recipient}")
            if not limit.allowed:
                logger.warning(
                    "Notification rate limited",
                    extra={
                        "notification_type": notification_type,
                        "recipient": mask_recipient(recipient),
                        "retry_after_seconds": limit.retry_after_seconds,
                    },
                )
                raise RateLimitExceededError(
                    "Too many notifications for recipient",
                    retry_after_seconds=limit.retry_after_seconds or 0,
                )

        key = generate_idempotency_key(recipient, notification_type, context_id)
        if self._dedup.is_duplicate(key, self._dedup_window_ms):
            logger.info(
                "Duplicate notification skipped",
                extra={
                    "notification_type": notification_type,
                    "recipient": mask_recipient(recipient),
                },
            )
            return NotifyResult(status="duplicate", idempotency_key=key)

        entry = self._queue.enqueue(
            notification_type,
            recipient,
            payload,
            max_attempts=self._max_attempts if max_attempts is None else max_attempts,
        )
        return NotifyResult(status="enqueued", idempotency_key=key, notification=entry)

    async def drain(self) -> DrainReport:
        """Processa a fila uma vez e resume o resultado."""
        eligible = {
            n.id
            for n in self._queue.get_queue()
            if n.status in (NotificationStatus.PENDING, NotificationStatus.FAILED)
        }

        with timed("notification_drain"):
            await self._queue.process_pending_notifications()

        counts = {status: 0 for status in NotificationStatus}
        for n in self._queue.get_queue():
            if n.id in eligible:
                counts[n.status] += 1

        evicted = self._dedup.evict_expired_entries(self._dedup_window_ms)
        report = DrainReport(
            processed=len(eligible),
            sent=counts[NotificationStatus.SENT],
            pending=counts[NotificationStatus.PENDING],
            failed=counts[NotificationStatus.FAILED],
            dead_letter=len(self._queue.get_dead_letter_queue()),
            evicted=evicted,
        )
        logger.info("Notification drain finished", extra=report.to_dict())
        return report

    async def _dispatch(self, notification: QueuedNotification) -> None:
        sender = self._senders.get(notification.type)
        if sender is None:
            raise UnsupportedNotificationTypeError(
                f"No sender registered for notification type '{notification.type}'"
            )

        await execute_resilient_api_call(
            f"send_{notification.type}",
            lambda: sender(notification),
            self._retry_options,
            sleep=self._sleep,
        )


def retry_options_from_settings(settings: Settings) -> ResilienceOptions[Any]:
    """Monta a política de retry (e breaker, se habilitado) a partir de Settings."""
    breaker = None
    if settings.circuit_breaker_enabled:
        breaker = CircuitBreaker(
            CircuitBreakerConfig(
                enabled=True,
                fail_max=settings.circuit_breaker_fail_max,
                reset_timeout_ms=settings.circuit_breaker_reset_timeout_ms,
                success_threshold=settings.circuit_breaker_success_threshold,
                half_open_max_calls=settings.circuit_breaker_half_open_max_calls,
            ),
            name="notification_senders",
        )
    return ResilienceOptions(
        max_retries=settings.resilient_max_retries,
        initial_delay_ms=settings.resilient_initial_delay_ms,
        max_delay_ms=settings.resilient_max_delay_ms,
        backoff_multiplier=settings.resilient_backoff_multiplier,
        circuit_breaker=breaker,
    )


def create_notification_service(
    settings: Settings,
    dedup_store: DedupStore,
    queue: NotificationQueue | None = None,
    sleep: Sleep = asyncio.sleep,
) -> NotificationService:
    """Factory do serviço a partir de Settings."""
    rate_limiter = None
    if settings.rate_limit_enabled:
        rate_limiter = FixedWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_ms=settings.rate_limit_window_ms,
        )

    return NotificationService(
        dedup_store,
        queue or NotificationQueue(),
        dedup_window_ms=settings.dedup_window_ms,
        max_attempts=settings.queue_max_attempts,
        retry_options=retry_options_from_settings(settings),
        rate_limiter=rate_limiter,
        sleep=sleep,
    )
