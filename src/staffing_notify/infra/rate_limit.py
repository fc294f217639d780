"""Rate limiter em memória com janela fixa por chave.

Adequado para uma instância; em várias instâncias cada processo conta
separadamente (mesma limitação do DedupStore em memória).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from staffing_notify.utils.clock import Clock, now_ms


@dataclass(slots=True)
class RateLimitEntry:
    """Contador da janela corrente de uma chave."""

    count: int
    reset_at: float


@dataclass(slots=True, frozen=True)
class RateLimitResult:
    """Resultado de uma verificação de limite."""

    allowed: bool
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None


class FixedWindowRateLimiter:
    """Permite até `max_requests` por chave a cada `window_ms`.

    A janela começa no primeiro hit da chave e reinicia quando
    `now >= reset_at`.
    """

    def __init__(self, max_requests: int, window_ms: int, clock: Clock | None = None) -> None:
        self._max_requests = max_requests
        self._window_ms = window_ms
        self._clock = clock or now_ms
        self._entries: dict[str, RateLimitEntry] = {}

    def check(self, key: str) -> RateLimitResult:
        """Registra o hit se permitido e retorna o estado da janela."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None or now >= entry.reset_at:
            entry = RateLimitEntry(count=0, reset_at=now + self._window_ms)
            self._entries[key] = entry

        if entry.count >= self._max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=entry.reset_at,
                retry_after_seconds=math.ceil((entry.reset_at - now) / 1000),
            )

        entry.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=self._max_requests - entry.count,
            reset_at=entry.reset_at,
        )

    def reset(self, key: str | None = None) -> None:
        """Limpa uma chave ou todas."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
