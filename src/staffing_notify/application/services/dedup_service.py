"""Serviço de Deduplicação — Lógica de Chave de Idempotência.

Responsabilidades:
- Gerar chaves de idempotência determinísticas
- Sem normalização: igualdade é comparação exata de string
"""

from __future__ import annotations


def generate_idempotency_key(
    recipient: str,
    notification_type: str,
    context_id: str | None = None,
) -> str:
    """Gera chave de idempotência para uma notificação.

    Formato: `type:recipient[:context_id]`. Mesmo input sempre produz a
    mesma chave; context_id vazio é tratado como ausente.

    Exemplo:
        generate_idempotency_key("34600000000", "whatsapp", "pedido-1")
        -> "whatsapp:34600000000:pedido-1"
    """
    base = f"{notification_type}:{recipient}"
    if context_id:
        return f"{base}:{context_id}"
    return base
