"""Circuit breaker para provedores de envio (WhatsApp, e-mail).

Estados:
- closed: chamadas passam; falhas consecutivas são contadas
- open: chamadas bloqueadas até `retry_at`
- half_open: chamadas de teste limitadas; `success_threshold` sucessos fecham,
  qualquer falha reabre

Conta chamadas resilientes que falharam (um ciclo completo de retries), não
tentativas individuais.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from staffing_notify.observability.logging import get_logger
from staffing_notify.utils.clock import Clock, now_ms

logger: logging.Logger = get_logger(__name__)

CircuitState = Literal["closed", "open", "half_open"]


@dataclass(frozen=True)
class CircuitBreakerConfig:
    enabled: bool = False
    fail_max: int = 5
    reset_timeout_ms: int = 30_000
    success_threshold: int = 2
    half_open_max_calls: int = 1


class CircuitBreaker:
    """Breaker por provedor; compartilhado entre chamadas do mesmo sender."""

    def __init__(
        self,
        config: CircuitBreakerConfig,
        name: str = "provider",
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._name = name
        self._clock = clock or now_ms
        self._lock = asyncio.Lock()
        self._state: CircuitState = "closed"
        self._failures = 0
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        self._retry_at: float | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def retry_at(self) -> float | None:
        """Epoch ms a partir do qual um breaker aberto aceita teste."""
        return self._retry_at

    async def allow_request(self) -> bool:
        if not self._config.enabled:
            return True

        async with self._lock:
            if self._state == "open":
                if self._retry_at is not None and self._clock() < self._retry_at:
                    return False
                self._enter_half_open()

            if self._state == "half_open":
                if self._half_open_in_flight >= self._config.half_open_max_calls:
                    return False
                self._half_open_in_flight += 1

            return True

    async def record_success(self) -> CircuitState:
        if not self._config.enabled:
            return "closed"

        async with self._lock:
            if self._state != "half_open":
                self._failures = 0
                return self._state

            self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            self._half_open_successes += 1
            if self._half_open_successes >= self._config.success_threshold:
                self._close()
            return self._state

    async def record_failure(self) -> CircuitState:
        if not self._config.enabled:
            return "closed"

        async with self._lock:
            self._failures += 1
            if self._state == "half_open" or self._failures >= self._config.fail_max:
                self._open()
            return self._state

    def reset(self) -> None:
        """Volta para closed sem histórico (operador/testes)."""
        self._close()

    def _open(self) -> None:
        self._state = "open"
        self._retry_at = self._clock() + self._config.reset_timeout_ms
        self._failures = 0
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        logger.warning(
            "Circuit breaker opened",
            extra={"breaker": self._name, "reset_timeout_ms": self._config.reset_timeout_ms},
        )

    def _enter_half_open(self) -> None:
        self._state = "half_open"
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        logger.info("Circuit breaker half-open", extra={"breaker": self._name})

    def _close(self) -> None:
        self._state = "closed"
        self._failures = 0
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        self._retry_at = None
