"""Latência por componente (drain da fila, envios)."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Iterator

from staffing_notify.observability.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def timed(component: str, slow_ms: float | None = None) -> Iterator[None]:
    """Loga `elapsed_ms` do bloco; acima de `slow_ms` o log sobe para warning."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        level = "warning" if slow_ms is not None and elapsed_ms > slow_ms else "info"
        getattr(logger, level)(
            "Component latency",
            extra={"component": component, "elapsed_ms": elapsed_ms},
        )
