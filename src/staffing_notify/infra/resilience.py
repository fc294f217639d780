"""Chamadas resilientes: retry com backoff exponencial, fallback e breaker.

Este módulo fornece o wrapper usado pelos senders de notificação para
absorver falhas transitórias de rede antes que a falha vire estado na fila:
- Até `max_retries + 1` tentativas no total
- Espera antes da tentativa n+1: min(initial_delay * multiplier^n, max_delay)
- Fallback opcional quando todas as tentativas falham
- Circuit breaker opcional (falha rápida enquanto aberto)

Não há timeout interno: uma operação travada bloqueia o chamador.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from staffing_notify.infra.circuit_breaker import CircuitBreaker
from staffing_notify.observability.logging import get_logger, log_fallback

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


class RetryError(Exception):
    """Todas as tentativas falharam; carrega o erro de cada tentativa."""

    def __init__(self, message: str, attempts: int, errors: list[Exception]) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.errors = errors

    @property
    def last_error(self) -> Exception:
        return self.errors[-1]


class CircuitOpenError(Exception):
    """Circuit breaker aberto: chamada bloqueada sem tentativa."""

    pass


@dataclass
class ResilienceOptions(Generic[T]):
    """Política de retry de uma chamada (delays em milissegundos)."""

    max_retries: int = 3
    initial_delay_ms: float = 1000
    max_delay_ms: float = 30_000
    backoff_multiplier: float = 2.0
    fallback: Callable[[], Awaitable[T]] | None = None
    on_failure: Callable[[Exception], None] | None = None
    on_retry: Callable[[int, Exception], None] | None = None
    circuit_breaker: CircuitBreaker | None = None


def calculate_backoff_ms(
    attempt: int,
    initial_delay_ms: float,
    max_delay_ms: float,
    backoff_multiplier: float,
) -> float:
    """Espera antes da tentativa `attempt + 1` (attempt começa em 0).

    Cresce passo a passo e para no teto, sem overflow para attempt grande.
    """
    delay = initial_delay_ms
    for _ in range(attempt):
        if delay >= max_delay_ms:
            break
        delay *= backoff_multiplier
    return min(delay, max_delay_ms)


async def _attempt_with_backoff(
    name: str,
    operation: Callable[[], Awaitable[T]],
    options: ResilienceOptions[Any],
    sleep: Sleep,
) -> T:
    total_attempts = options.max_retries + 1
    errors: list[Exception] = []

    for attempt in range(total_attempts):
        try:
            return await operation()
        except Exception as exc:
            errors.append(exc)
            logger.warning(
                "Resilient call attempt failed",
                extra={
                    "call": name,
                    "attempt": attempt + 1,
                    "max_attempts": total_attempts,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

            if attempt < options.max_retries:
                if options.on_retry:
                    options.on_retry(attempt + 1, exc)
                delay_ms = calculate_backoff_ms(
                    attempt,
                    options.initial_delay_ms,
                    options.max_delay_ms,
                    options.backoff_multiplier,
                )
                logger.info(
                    "Aguardando backoff antes de retry",
                    extra={"call": name, "backoff_ms": delay_ms, "next_attempt": attempt + 2},
                )
                await sleep(delay_ms / 1000)

    raise RetryError(
        f"{name}: operation failed after {total_attempts} attempt(s)",
        total_attempts,
        errors,
    )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    options: ResilienceOptions[Any] | None = None,
    *,
    name: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Executa com retry/backoff; sem fallback.

    Raises:
        RetryError: com a lista de erros de todas as tentativas
    """
    return await _attempt_with_backoff(name, operation, options or ResilienceOptions(), sleep)


async def execute_resilient_api_call(
    name: str,
    operation: Callable[[], Awaitable[T]],
    options: ResilienceOptions[T] | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Executa uma chamada externa com retry, backoff e fallback.

    Args:
        name: Rótulo para logs/erros (sem efeito funcional)
        operation: Função assíncrona sem argumentos
        options: Política de retry; default ResilienceOptions()
        sleep: Função de espera (injetável em testes)

    Returns:
        Resultado da operação, ou do fallback se todas as tentativas falharem

    Raises:
        Exception: o erro da última tentativa quando não há fallback
            (CircuitOpenError se o breaker bloqueou a chamada); exceções do
            próprio fallback propagam sem tratamento
    """
    opts = options or ResilienceOptions()
    breaker = opts.circuit_breaker

    if breaker is not None and not await breaker.allow_request():
        logger.warning(
            "Circuit breaker aberto - falha rápida",
            extra={"call": name, "breaker_state": breaker.state},
        )
        final_error: Exception = CircuitOpenError(f"{name}: circuit breaker is open")
        return await _finish_exhausted(name, final_error, opts, reason="circuit_open")

    try:
        result = await _attempt_with_backoff(name, operation, opts, sleep)
    except RetryError as exc:
        final_error = exc.last_error
    except BaseException:
        # Cancelamento (ex.: wait_for do chamador) libera a vaga de half-open
        if breaker is not None:
            await breaker.record_failure()
        raise
    else:
        if breaker is not None:
            await breaker.record_success()
        return result

    if breaker is not None:
        await breaker.record_failure()
    return await _finish_exhausted(name, final_error, opts, reason="retries_exhausted")


async def _finish_exhausted(
    name: str,
    error: Exception,
    options: ResilienceOptions[T],
    reason: str,
) -> T:
    """on_failure, depois fallback ou re-raise do último erro."""
    if options.on_failure:
        options.on_failure(error)

    logger.error(
        "Esgotou tentativas da chamada resiliente",
        extra={
            "call": name,
            "total_attempts": options.max_retries + 1,
            "error_type": type(error).__name__,
            "error": str(error),
        },
    )

    if options.fallback is not None:
        log_fallback(logger, name, reason=reason)
        return await options.fallback()

    raise error
