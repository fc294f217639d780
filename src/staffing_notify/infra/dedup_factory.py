"""Escolha do DedupStore a partir de DEDUP_BACKEND (memory | redis)."""

from __future__ import annotations

import logging
from typing import Any

from staffing_notify.domain.dedup import DedupStore
from staffing_notify.infra.dedup_memory import InMemoryDedupStore
from staffing_notify.infra.dedup_redis import RedisDedupStore
from staffing_notify.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def create_dedup_store(
    backend: str,
    redis_client: Any | None = None,
    window_ms: int = DedupStore.DEFAULT_WINDOW_MS,
) -> DedupStore:
    """Factory para DedupStore.

    Args:
        backend: "memory" ou "redis"
        redis_client: Cliente Redis (obrigatório se backend="redis")
        window_ms: Janela usada como TTL por mark_sent no Redis

    Returns:
        DedupStore configurado

    Raises:
        ValueError: Se backend inválido ou cliente não fornecido
    """
    backend = backend.lower()

    if backend == "memory":
        logger.warning("Using in-memory dedup store (single instance only)")
        return InMemoryDedupStore()

    if backend == "redis":
        if not redis_client:
            msg = "redis_client required for redis backend"
            raise ValueError(msg)
        logger.info("Using Redis dedup store")
        return RedisDedupStore(redis_client, mark_ttl_ms=window_ms)

    msg = f"Unknown dedup backend: {backend}"
    raise ValueError(msg)
