"""Construção de payloads da WhatsApp Cloud API (texto e botões de resposta)."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

from staffing_notify.domain.errors import InvalidRecipientError

_NON_DIGITS = re.compile(r"\D")

DEFAULT_COUNTRY_CODE = "34"
MIN_PHONE_DIGITS = 9

CONFIRM_BUTTON_TITLE = "ACEPTO ✅"
REJECT_BUTTON_TITLE = "RECHAZO ❌"


def normalize_phone(raw: str) -> str:
    """Normaliza telefone para o formato da API (apenas dígitos, com DDI).

    Números de 9 dígitos sem DDI recebem o prefixo espanhol (34).

    Raises:
        InvalidRecipientError: se sobrar menos de 9 dígitos
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if len(digits) < MIN_PHONE_DIGITS:
        raise InvalidRecipientError("Número de teléfono inválido")
    if len(digits) == MIN_PHONE_DIGITS and not digits.startswith(DEFAULT_COUNTRY_CODE):
        digits = DEFAULT_COUNTRY_CODE + digits
    return digits


def build_text_body(phone: str, message: str) -> dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "to": phone,
        "type": "text",
        "text": {"body": message},
    }


def build_confirmation_body(phone: str, message: str, assignment_id: str) -> dict[str, Any]:
    """Mensagem interativa com botões de confirmar/rechazar a atribuição.

    A Cloud API não tem botões de URL nativos: usamos reply buttons cujo id
    (`confirmar::<id>` / `rechazar::<id>`) é tratado pelo webhook.
    """
    return {
        "messaging_product": "whatsapp",
        "to": phone,
        "type": "interactive",
        "interactive": {
            "type": "button",
            "body": {"text": message},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {"id": f"confirmar::{assignment_id}", "title": CONFIRM_BUTTON_TITLE},
                    },
                    {
                        "type": "reply",
                        "reply": {"id": f"rechazar::{assignment_id}", "title": REJECT_BUTTON_TITLE},
                    },
                ]
            },
        },
    }


def build_wa_me_link(phone: str, message: str) -> str:
    """Link wa.me para envio manual quando a API não está disponível."""
    return f"https://wa.me/{phone}?text={quote(message, safe='')}"
