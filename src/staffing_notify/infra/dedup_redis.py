"""DedupStore em Redis — Para Produção (várias instâncias).

Responsabilidades:
- Implementar DedupStore usando Redis compartilhado
- Usar SET NX PX para o caminho comum (chave nova)
- Fail-closed em caso de indisponibilidade

Estrutura Redis:
    KEY: {prefix}{idempotency_key}
    VALUE: timestamp em ms (string)
    EXPIRE: window_ms (PX), renovado a cada marcação
"""

from __future__ import annotations

import logging
from typing import Any

from staffing_notify.domain.dedup import DedupEntry, DedupStore
from staffing_notify.domain.errors import DedupStoreError
from staffing_notify.observability.logging import get_logger
from staffing_notify.utils.clock import Clock, now_ms

logger: logging.Logger = get_logger(__name__)


class RedisDedupStore(DedupStore):
    """Store Redis; o cliente é qualquer objeto compatível com redis-py."""

    def __init__(
        self,
        redis_client: Any,
        key_prefix: str = "notify:dedup:",
        clock: Clock | None = None,
        mark_ttl_ms: int = DedupStore.DEFAULT_WINDOW_MS,
    ) -> None:
        self._redis = redis_client
        self._prefix = key_prefix
        self._clock = clock or now_ms
        # TTL usado por mark_sent, que não recebe janela
        self._mark_ttl_ms = mark_ttl_ms

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def is_duplicate(self, key: str, window_ms: int = DedupStore.DEFAULT_WINDOW_MS) -> bool:
        redis_key = self._key(key)
        now = self._clock()
        try:
            if self._redis.set(redis_key, str(int(now)), nx=True, px=window_ms):
                return False

            existing = self._redis.get(redis_key)
            if existing is not None:
                if isinstance(existing, bytes):
                    existing = existing.decode("utf-8")
                if DedupEntry(timestamp=float(existing)).is_fresh(now, window_ms):
                    logger.debug(
                        "Dedup hit (Redis)",
                        extra={"key_prefix": key[:8] + "..."},
                    )
                    return True

            self._redis.set(redis_key, str(int(now)), px=window_ms)
            return False
        except Exception as e:
            logger.error("Redis dedup failed (fail-closed)", extra={"error": str(e)})
            raise DedupStoreError(f"Redis unavailable: {e}") from e

    def mark_sent(self, key: str) -> None:
        try:
            self._redis.set(self._key(key), str(int(self._clock())), px=self._mark_ttl_ms)
        except Exception as e:
            logger.error("Redis dedup mark failed (fail-closed)", extra={"error": str(e)})
            raise DedupStoreError(f"Redis unavailable: {e}") from e

    def evict_expired_entries(self, window_ms: int = DedupStore.DEFAULT_WINDOW_MS) -> int:
        # O TTL nativo do Redis já remove as chaves expiradas
        return 0

    def clear_dedup_cache(self) -> None:
        try:
            keys = list(self._redis.scan_iter(match=f"{self._prefix}*"))
            if keys:
                self._redis.delete(*keys)
        except Exception as e:
            logger.error("Redis dedup clear failed", extra={"error": str(e)})
            raise DedupStoreError(f"Redis unavailable: {e}") from e
