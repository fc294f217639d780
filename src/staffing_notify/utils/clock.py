"""Relógio em milissegundos (injetável nos componentes com janela de tempo)."""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], float]


def now_ms() -> float:
    """Epoch atual em milissegundos."""

    return time.time() * 1000
