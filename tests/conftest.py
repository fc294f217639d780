from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from staffing_notify.api.app import create_app
from staffing_notify.config.settings import Settings, get_settings


class FakeClock:
    """Relógio controlado em milissegundos."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0) -> None:
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Substitui asyncio.sleep registrando as esperas (em segundos)."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("INTERNAL_TASK_TOKEN", "internal-test-token")
    monkeypatch.delenv("WHATSAPP_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("WHATSAPP_PHONE_NUMBER_ID", raising=False)
    get_settings.cache_clear()
    app = create_app(Settings())
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()
