"""IdempotencyRecordStore em memória (dev/testes)."""

from __future__ import annotations

from staffing_notify.domain.idempotency import IdempotencyRecord, IdempotencyRecordStore


class InMemoryIdempotencyRecordStore(IdempotencyRecordStore):
    def __init__(self) -> None:
        self._records: dict[str, IdempotencyRecord] = {}

    async def get(self, key: str) -> IdempotencyRecord | None:
        return self._records.get(key)

    async def put(self, record: IdempotencyRecord) -> None:
        self._records[record.key] = record

    async def delete(self, key: str) -> None:
        self._records.pop(key, None)

    async def list_all(self) -> list[IdempotencyRecord]:
        return list(self._records.values())
