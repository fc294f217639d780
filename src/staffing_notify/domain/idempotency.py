"""Contrato do store de chaves de idempotência com resultado em cache."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class IdempotencyRecord:
    """Resultado serializado (JSON) de uma operação já executada."""

    key: str
    result_json: str
    created_at: float  # ms desde epoch


class IdempotencyRecordStore(ABC):
    """Persistência de IdempotencyRecord (entity store, Redis, memória)."""

    @abstractmethod
    async def get(self, key: str) -> IdempotencyRecord | None: ...

    @abstractmethod
    async def put(self, record: IdempotencyRecord) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def list_all(self) -> list[IdempotencyRecord]: ...
