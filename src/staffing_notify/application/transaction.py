"""Saga: operações em sequência com rollback compensatório.

Cada passo bem-sucedido pode registrar uma compensação. Se um passo falha,
todas as compensações registradas rodam em ordem reversa (LIFO) e o erro
original é relançado. Erros de rollback são logados, nunca substituem o erro
original nem interrompem as demais compensações.

Uso típico:
    tx = TransactionManager()
    group = await tx.execute(create_group, lambda: delete_group(group_id))
    await tx.execute(send_whatsapp)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from staffing_notify.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")

RollbackFn = Callable[[], Awaitable[None]]


class TransactionManager:
    """Gerencia a lista de compensações de uma transação lógica."""

    def __init__(self, name: str = "transaction") -> None:
        self._name = name
        self._rollbacks: list[RollbackFn] = []

    @property
    def pending_rollbacks(self) -> int:
        return len(self._rollbacks)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        rollback_fn: RollbackFn | None = None,
    ) -> T:
        """Executa um passo; em sucesso guarda `rollback_fn` para uso futuro.

        Em falha, roda os rollbacks já registrados (LIFO) e relança o erro
        original do passo.
        """
        try:
            result = await operation()
        except Exception as exc:
            logger.error(
                "Transaction step failed - rolling back",
                extra={
                    "transaction": self._name,
                    "rollback_steps": len(self._rollbacks),
                    "error_type": type(exc).__name__,
                },
            )
            await self._rollback_all()
            raise

        if rollback_fn is not None:
            self._rollbacks.append(rollback_fn)
        return result

    def add_rollback(self, fn: RollbackFn) -> None:
        """Registra compensação sem executar operação."""
        self._rollbacks.append(fn)

    async def _rollback_all(self) -> None:
        # Lista limpa antes de rodar: um rollback não pode se disparar de novo
        to_run = list(reversed(self._rollbacks))
        self._rollbacks = []
        for index, rollback_fn in enumerate(to_run, start=1):
            try:
                await rollback_fn()
            except Exception as exc:
                logger.error(
                    "Rollback step failed",
                    extra={
                        "transaction": self._name,
                        "rollback_step": index,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
