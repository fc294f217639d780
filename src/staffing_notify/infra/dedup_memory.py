"""DedupStore em Memória — Padrão para Desenvolvimento e Testes.

Responsabilidades:
- Implementar DedupStore usando dict em memória
- Janela configurável por chamada (check-and-set)
- Limpeza explícita de entradas expiradas

⚠️ Estado por processo: não sobrevive a restart e não é compartilhado entre
instâncias concorrentes (duas instâncias podem passar por is_duplicate para a
mesma chave). Para isso use RedisDedupStore.
"""

from __future__ import annotations

import logging

from staffing_notify.domain.dedup import DedupEntry, DedupStore
from staffing_notify.observability.logging import get_logger
from staffing_notify.utils.clock import Clock, now_ms

logger: logging.Logger = get_logger(__name__)


class InMemoryDedupStore(DedupStore):
    """Store em memória: {idempotency_key: DedupEntry}."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._entries: dict[str, DedupEntry] = {}
        self._clock = clock or now_ms

    def is_duplicate(self, key: str, window_ms: int = DedupStore.DEFAULT_WINDOW_MS) -> bool:
        """Verifica e marca em memória."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(now, window_ms):
            logger.debug("Dedup hit (in-memory)", extra={"key_prefix": key[:8] + "..."})
            return True

        self._entries[key] = DedupEntry(timestamp=now)
        return False

    def mark_sent(self, key: str) -> None:
        self._entries[key] = DedupEntry(timestamp=self._clock())

    def evict_expired_entries(self, window_ms: int = DedupStore.DEFAULT_WINDOW_MS) -> int:
        now = self._clock()
        expired = [k for k, v in self._entries.items() if not v.is_fresh(now, window_ms)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Dedup entries evicted", extra={"evicted": len(expired)})
        return len(expired)

    def clear_dedup_cache(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
