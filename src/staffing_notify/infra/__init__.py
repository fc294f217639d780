"""Camada de infraestrutura — stores, fila e chamadas resilientes.

Este módulo exporta os componentes de entrega confiável:

- Dedup: InMemoryDedupStore, RedisDedupStore, create_dedup_store
- Fila: NotificationQueue
- Resiliência: execute_resilient_api_call, retry_with_backoff, CircuitBreaker
- Rate limit: FixedWindowRateLimiter

Uso típico:
    from staffing_notify.infra import NotificationQueue, create_dedup_store

Infraestrutura não decide regra de negócio; logs estruturados sem PII.
"""

from staffing_notify.infra.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from staffing_notify.infra.dedup_factory import create_dedup_store
from staffing_notify.infra.dedup_memory import InMemoryDedupStore
from staffing_notify.infra.dedup_redis import RedisDedupStore
from staffing_notify.infra.idempotency_memory import InMemoryIdempotencyRecordStore
from staffing_notify.infra.notification_queue import NotificationQueue
from staffing_notify.infra.rate_limit import FixedWindowRateLimiter, RateLimitResult
from staffing_notify.infra.resilience import (
    CircuitOpenError,
    ResilienceOptions,
    RetryError,
    calculate_backoff_ms,
    execute_resilient_api_call,
    retry_with_backoff,
)

__all__ = [
    # Dedup
    "InMemoryDedupStore",
    "RedisDedupStore",
    "create_dedup_store",
    # Idempotency records
    "InMemoryIdempotencyRecordStore",
    # Fila
    "NotificationQueue",
    # Resiliência
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "ResilienceOptions",
    "RetryError",
    "calculate_backoff_ms",
    "execute_resilient_api_call",
    "retry_with_backoff",
    # Rate limit
    "FixedWindowRateLimiter",
    "RateLimitResult",
]
