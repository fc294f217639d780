"""Testes da fila de notificações (retry, dead-letter, snapshots)."""

from __future__ import annotations

import asyncio

import pytest

from staffing_notify.domain.notifications import NotificationStatus, QueuedNotification
from staffing_notify.infra.notification_queue import NotificationQueue


@pytest.fixture
def queue(clock) -> NotificationQueue:
    return NotificationQueue(clock=clock)


class FlakyHandler:
    """Falha nas primeiras `failures` chamadas e depois tem sucesso."""

    def __init__(self, failures: int = 0, message: str = "boom") -> None:
        self.failures = failures
        self.message = message
        self.calls: list[str] = []

    async def __call__(self, notification: QueuedNotification) -> None:
        self.calls.append(notification.id)
        if len(self.calls) <= self.failures:
            raise RuntimeError(self.message)


class TestEnqueue:
    def test_enqueue_creates_pending_entry(self, queue: NotificationQueue, clock) -> None:
        entry = queue.enqueue("whatsapp", "34600000000", {"message": "Hola"})

        assert entry.status == NotificationStatus.PENDING
        assert entry.attempts == 0
        assert entry.max_attempts == 3
        assert entry.created_at == clock.now
        assert entry.last_attempt_at is None
        assert entry.error is None
        assert entry.id.startswith(f"whatsapp:34600000000:{int(clock.now)}")

    def test_identical_enqueues_produce_distinct_entries(self, queue: NotificationQueue) -> None:
        """A fila não deduplica: mesmo (type, recipient, payload) no mesmo ms."""
        first = queue.enqueue("whatsapp", "34600000000", {"message": "Hola"})
        second = queue.enqueue("whatsapp", "34600000000", {"message": "Hola"})

        assert first.id != second.id
        assert len(queue.get_queue()) == 2

    def test_custom_max_attempts(self, queue: NotificationQueue) -> None:
        entry = queue.enqueue("email", "camarero@example.com", {}, max_attempts=5)
        assert entry.max_attempts == 5


class TestProcessPendingNotifications:
    @pytest.mark.asyncio
    async def test_success_marks_sent(self, queue: NotificationQueue, clock) -> None:
        handler = FlakyHandler()
        queue.register_send_handler(handler)
        queue.enqueue("whatsapp", "34600000000", {"message": "Hola"})
        clock.advance(500)

        await queue.process_pending_notifications()

        [entry] = queue.get_queue()
        assert entry.status == NotificationStatus.SENT
        assert entry.attempts == 1
        assert entry.last_attempt_at == clock.now
        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_single_attempt_failure_goes_to_dead_letter(
        self, queue: NotificationQueue
    ) -> None:
        queue.register_send_handler(FlakyHandler(failures=99, message="api down"))
        queue.enqueue("whatsapp", "34600000000", {"message": "Hola"}, max_attempts=1)

        await queue.process_pending_notifications()

        [entry] = queue.get_queue()
        assert entry.status == NotificationStatus.FAILED
        assert entry.attempts == 1
        assert entry.error == "api down"
        assert [n.id for n in queue.get_dead_letter_queue()] == [entry.id]

    @pytest.mark.asyncio
    async def test_retry_then_succeed(self, queue: NotificationQueue) -> None:
        queue.register_send_handler(FlakyHandler(failures=1))
        queue.enqueue("whatsapp", "34600000000", {"message": "Hola"}, max_attempts=3)

        await queue.process_pending_notifications()
        [after_first] = queue.get_queue()
        assert after_first.status == NotificationStatus.PENDING
        assert after_first.attempts == 1
        assert after_first.error == "boom"

        await queue.process_pending_notifications()
        [entry] = queue.get_queue()
        assert entry.status == NotificationStatus.SENT
        assert entry.attempts == 2
        assert queue.get_dead_letter_queue() == []

    @pytest.mark.asyncio
    async def test_exhausted_entries_are_not_reprocessed(self, queue: NotificationQueue) -> None:
        handler = FlakyHandler(failures=99)
        queue.register_send_handler(handler)
        queue.enqueue("whatsapp", "34600000000", {"message": "Hola"}, max_attempts=2)

        await queue.process_pending_notifications()
        await queue.process_pending_notifications()
        assert len(handler.calls) == 2

        await queue.process_pending_notifications()

        [entry] = queue.get_queue()
        assert len(handler.calls) == 2
        assert entry.attempts == 2
        assert entry.status == NotificationStatus.FAILED

    @pytest.mark.asyncio
    async def test_zero_max_attempts_dead_letters_without_handler_call(
        self, queue: NotificationQueue
    ) -> None:
        handler = FlakyHandler()
        queue.register_send_handler(handler)
        queue.enqueue("whatsapp", "34600000000", {}, max_attempts=0)

        await queue.process_pending_notifications()

        [entry] = queue.get_queue()
        assert handler.calls == []
        assert entry.status == NotificationStatus.FAILED
        assert entry.attempts == 0

    @pytest.mark.asyncio
    async def test_without_handler_is_noop(self, queue: NotificationQueue) -> None:
        queue.enqueue("whatsapp", "34600000000", {})

        await queue.process_pending_notifications()

        [entry] = queue.get_queue()
        assert entry.status == NotificationStatus.PENDING
        assert entry.attempts == 0

    @pytest.mark.asyncio
    async def test_entries_processed_in_insertion_order(self, queue: NotificationQueue) -> None:
        handler = FlakyHandler()
        queue.register_send_handler(handler)
        ids = [queue.enqueue("whatsapp", f"3460000000{i}", {}).id for i in range(3)]

        await queue.process_pending_notifications()

        assert handler.calls == ids

    @pytest.mark.asyncio
    async def test_handler_sees_processing_status(self, queue: NotificationQueue) -> None:
        seen: list[tuple[NotificationStatus, int]] = []

        async def handler(notification: QueuedNotification) -> None:
            seen.append((notification.status, notification.attempts))

        queue.register_send_handler(handler)
        queue.enqueue("whatsapp", "34600000000", {})

        await queue.process_pending_notifications()

        assert seen == [(NotificationStatus.PROCESSING, 1)]

    @pytest.mark.asyncio
    async def test_sent_entries_are_skipped_on_next_drain(self, queue: NotificationQueue) -> None:
        handler = FlakyHandler()
        queue.register_send_handler(handler)
        queue.enqueue("whatsapp", "34600000000", {})

        await queue.process_pending_notifications()
        await queue.process_pending_notifications()

        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_replacing_handler_affects_next_drain(self, queue: NotificationQueue) -> None:
        failing = FlakyHandler(failures=99)
        working = FlakyHandler()
        queue.register_send_handler(failing)
        queue.enqueue("whatsapp", "34600000000", {})

        await queue.process_pending_notifications()
        queue.register_send_handler(working)
        await queue.process_pending_notifications()

        [entry] = queue.get_queue()
        assert len(failing.calls) == 1
        assert len(working.calls) == 1
        assert entry.status == NotificationStatus.SENT


class TestSnapshots:
    @pytest.mark.asyncio
    async def test_get_queue_returns_copies(self, queue: NotificationQueue) -> None:
        queue.enqueue("whatsapp", "34600000000", {"message": "Hola"})

        [snapshot] = queue.get_queue()
        snapshot.status = NotificationStatus.SENT
        snapshot.payload["message"] = "changed"

        [entry] = queue.get_queue()
        assert entry.status == NotificationStatus.PENDING
        assert entry.payload == {"message": "Hola"}

    def test_stats_and_clear(self, queue: NotificationQueue) -> None:
        queue.enqueue("whatsapp", "34600000000", {})
        queue.enqueue("email", "camarero@example.com", {})

        assert queue.get_stats() == {"pending": 2, "processing": 0, "sent": 0, "failed": 0}

        queue.clear_queue()

        assert queue.get_queue() == []
        assert len(queue) == 0

    def test_to_dict_serializes_status(self, queue: NotificationQueue) -> None:
        entry = queue.enqueue("whatsapp", "34600000000", {"message": "Hola"})

        data = entry.to_dict()

        assert data["status"] == "pending"
        assert data["payload"] == {"message": "Hola"}
        assert data["recipient"] == "34600000000"


class TestOwnershipAndConcurrency:
    def test_caller_payload_mutation_does_not_reach_queue(
        self, queue: NotificationQueue
    ) -> None:
        payload = {"message": "Hola"}
        queue.enqueue("whatsapp", "34600000000", payload)

        payload["message"] = "changed"

        assert queue.get_queue()[0].payload == {"message": "Hola"}

    @pytest.mark.asyncio
    async def test_overlapping_drains_send_each_entry_once(
        self, queue: NotificationQueue
    ) -> None:
        calls: list[str] = []

        async def slow_handler(notification: QueuedNotification) -> None:
            calls.append(notification.id)
            await asyncio.sleep(0.01)

        queue.register_send_handler(slow_handler)
        first = queue.enqueue("whatsapp", "34600000000", {"message": "a"})
        second = queue.enqueue("whatsapp", "34600000001", {"message": "b"})

        await asyncio.gather(
            queue.process_pending_notifications(),
            queue.process_pending_notifications(),
        )

        assert sorted(calls) == sorted([first.id, second.id])
        assert [n.attempts for n in queue.get_queue()] == [1, 1]
        assert {n.status for n in queue.get_queue()} == {NotificationStatus.SENT}
