"""Idempotência de operações críticas com resultado em cache.

Diferente do DedupStore (apenas "já vi esta chave?"), aqui o resultado da
primeira execução é guardado e devolvido nas repetições dentro do TTL
(padrão 24h). Usado por operações como confirmar um serviço ou criar um
grupo de chat, onde o chamador precisa da mesma resposta na repetição.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from staffing_notify.domain.idempotency import IdempotencyRecord, IdempotencyRecordStore
from staffing_notify.observability.logging import get_logger
from staffing_notify.utils.clock import Clock, now_ms

logger: logging.Logger = get_logger(__name__)

IDEMPOTENCY_TTL_SECONDS = 24 * 60 * 60


class IdempotencyManager:
    """Verifica/salva chaves de idempotência em um IdempotencyRecordStore."""

    def __init__(
        self,
        record_store: IdempotencyRecordStore,
        ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        self._store = record_store
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock or now_ms

    def _is_expired(self, record: IdempotencyRecord, now: float) -> bool:
        return now - record.created_at > self._ttl_ms

    async def check_key(self, key: str) -> Any | None:
        """Retorna o resultado em cache ou None se a operação deve prosseguir.

        Registros expirados são removidos (falha na remoção só é logada).
        """
        record = await self._store.get(key)
        if record is None:
            return None

        if self._is_expired(record, self._clock()):
            try:
                await self._store.delete(key)
            except Exception as exc:
                logger.warning(
                    "Failed to delete expired idempotency key",
                    extra={"key_prefix": key[:8] + "...", "error": str(exc)},
                )
            return None

        logger.info("Duplicate request detected", extra={"key_prefix": key[:8] + "..."})
        return json.loads(record.result_json)

    async def save_key(self, key: str, result: Any) -> None:
        """Persiste o resultado da operação concluída (erros só logados)."""
        try:
            await self._store.put(
                IdempotencyRecord(
                    key=key,
                    result_json=json.dumps(result, ensure_ascii=False),
                    created_at=self._clock(),
                )
            )
        except Exception as exc:
            logger.warning(
                "Could not persist idempotency key",
                extra={"key_prefix": key[:8] + "...", "error": str(exc)},
            )
            return
        logger.info("Idempotency key saved", extra={"key_prefix": key[:8] + "..."})

    async def clean_expired_keys(self) -> int:
        """Remove todas as chaves expiradas; retorna quantas saíram."""
        now = self._clock()
        removed = 0
        for record in await self._store.list_all():
            if not self._is_expired(record, now):
                continue
            try:
                await self._store.delete(record.key)
                removed += 1
            except Exception as exc:
                logger.warning(
                    "Error deleting expired idempotency key",
                    extra={"key_prefix": record.key[:8] + "...", "error": str(exc)},
                )

        logger.info("Expired idempotency keys removed", extra={"removed": removed})
        return removed
