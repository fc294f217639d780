"""Modelos de domínio da fila de notificações.

Máquina de estados de uma entrada:

    pending --(sucesso)--> sent                      [terminal]
    pending --(falha, attempts < max)--> pending     [elegível a retry]
    pending --(falha, attempts == max)--> failed     [terminal]
    pending --(attempts >= max no scan)--> failed    [terminal, sem handler]

`failed` sempre significa tentativas esgotadas (dead-letter).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class NotificationStatus(str, Enum):
    """Status de uma notificação enfileirada."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class NotificationType(str, Enum):
    """Canais conhecidos. A fila aceita qualquer string (extensível)."""

    WHATSAPP = "whatsapp"
    EMAIL = "email"


@dataclass(slots=True)
class QueuedNotification:
    """Unidade de trabalho outbound (timestamps em ms desde epoch)."""

    id: str
    type: str
    recipient: str
    payload: dict[str, Any] = field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    created_at: float = 0.0
    last_attempt_at: float | None = None
    error: str | None = None

    @property
    def is_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def to_dict(self) -> dict[str, Any]:
        """Serializa para JSON (status como string)."""
        data = asdict(self)
        data["status"] = self.status.value
        return data


SendHandler = Callable[[QueuedNotification], Awaitable[None]]
