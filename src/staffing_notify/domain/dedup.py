"""Contrato de Deduplicação — Protocolo e Tipos.

Responsabilidades:
- Definir protocolo abstrato para store de idempotência com janela (TTL)
- Garantir contrato entre Application e Infra
- Definir DTOs de domínio
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(slots=True)
class DedupEntry:
    """Registro de uma operação vista (timestamp em ms desde epoch)."""

    timestamp: float

    def is_fresh(self, now_ms: float, window_ms: int) -> bool:
        """Dentro da janela a entrada conta como duplicata."""
        return now_ms - self.timestamp < window_ms


class DedupStore(ABC):
    """Contrato abstrato para deduplicação por idempotency key.

    Uma entrada é "fresca" enquanto `now - timestamp < window_ms`; depois
    disso é logicamente ausente, mesmo que ainda não tenha sido removida.
    """

    DEFAULT_WINDOW_MS = 60_000

    @abstractmethod
    def is_duplicate(self, key: str, window_ms: int = DEFAULT_WINDOW_MS) -> bool:
        """Check-and-set: retorna True se a chave foi vista dentro da janela.

        Caso contrário grava/renova a entrada com o timestamp atual e
        retorna False. Chamar este método já marca a chave como vista, então
        deve ser chamado uma única vez por tentativa de envio.
        """
        ...

    @abstractmethod
    def mark_sent(self, key: str) -> None:
        """Renova incondicionalmente o timestamp da chave."""
        ...

    @abstractmethod
    def evict_expired_entries(self, window_ms: int = DEFAULT_WINDOW_MS) -> int:
        """Remove entradas com idade >= window_ms; retorna quantas saíram."""
        ...

    @abstractmethod
    def clear_dedup_cache(self) -> None:
        """Remove todas as entradas (reset/testes)."""
        ...
