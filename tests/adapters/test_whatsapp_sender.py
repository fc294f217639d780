"""Testes do sender WhatsApp (payloads, fallback texto, erros da API)."""

from __future__ import annotations

import json

import httpx
import pytest

from staffing_notify.adapters.whatsapp.payloads import (
    build_confirmation_body,
    build_wa_me_link,
    normalize_phone,
)
from staffing_notify.adapters.whatsapp.sender import WhatsAppSender, create_whatsapp_sender
from staffing_notify.config.settings import Settings
from staffing_notify.domain.errors import (
    ExternalServiceError,
    InvalidPayloadError,
    InvalidRecipientError,
)

ENDPOINT = "https://graph.facebook.com/v21.0"


class FakeGraphApi:
    """Handler do MockTransport; responde na ordem de `responses`."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def ok(message_id: str = "wamid.1") -> httpx.Response:
    return httpx.Response(200, json={"messages": [{"id": message_id}]})


def make_sender(api: FakeGraphApi) -> WhatsAppSender:
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    return WhatsAppSender(ENDPOINT, "test-token", "123456", http_client=client)


class TestNormalizePhone:
    def test_adds_spanish_prefix_to_nine_digits(self) -> None:
        assert normalize_phone("612 345 678") == "34612345678"

    def test_keeps_existing_prefix(self) -> None:
        assert normalize_phone("+34 612-345-678") == "34612345678"

    def test_nine_digits_starting_with_34_unchanged(self) -> None:
        assert normalize_phone("345678901") == "345678901"

    def test_too_short_is_invalid(self) -> None:
        with pytest.raises(InvalidRecipientError):
            normalize_phone("12345")


class TestPayloads:
    def test_confirmation_buttons(self) -> None:
        body = build_confirmation_body("34612345678", "¿Aceptas?", "asig789")

        buttons = body["interactive"]["action"]["buttons"]
        assert body["type"] == "interactive"
        assert [b["reply"]["id"] for b in buttons] == ["confirmar::asig789", "rechazar::asig789"]

    def test_wa_me_link_encodes_message(self) -> None:
        link = build_wa_me_link("34612345678", "Hola, ¿mañana?")

        assert link.startswith("https://wa.me/34612345678?text=")
        assert " " not in link
        assert "Hola%2C" in link


class TestWhatsAppSender:
    @pytest.mark.asyncio
    async def test_sends_plain_text(self) -> None:
        api = FakeGraphApi(ok("wamid.text"))
        sender = make_sender(api)

        message_id = await sender.send("612345678", {"message": "Tienes servicio mañana"})

        assert message_id == "wamid.text"
        request = api.requests[0]
        assert str(request.url) == f"{ENDPOINT}/123456/messages"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert api.bodies()[0] == {
            "messaging_product": "whatsapp",
            "to": "34612345678",
            "type": "text",
            "text": {"body": "Tienes servicio mañana"},
        }

    @pytest.mark.asyncio
    async def test_sends_buttons_when_links_present(self) -> None:
        api = FakeGraphApi(ok("wamid.buttons"))
        sender = make_sender(api)

        message_id = await sender.send(
            "612345678",
            {
                "message": "¿Aceptas el servicio?",
                "assignment_id": "asig789",
                "confirm_link": "https://app.example.com/confirmar/asig789",
                "reject_link": "https://app.example.com/rechazar/asig789",
            },
        )

        assert message_id == "wamid.buttons"
        assert api.bodies()[0]["type"] == "interactive"

    @pytest.mark.asyncio
    async def test_interactive_failure_falls_back_to_text(self) -> None:
        api = FakeGraphApi(
            httpx.Response(400, json={"error": {"message": "Interactive not supported"}}),
            ok("wamid.fallback"),
        )
        sender = make_sender(api)

        message_id = await sender.send(
            "612345678",
            {
                "message": "¿Aceptas?",
                "assignment_id": "asig789",
                "confirm_link": "https://x/c",
                "reject_link": "https://x/r",
            },
        )

        assert message_id == "wamid.fallback"
        assert [b["type"] for b in api.bodies()] == ["interactive", "text"]

    @pytest.mark.asyncio
    async def test_missing_one_link_sends_text(self) -> None:
        api = FakeGraphApi(ok())
        sender = make_sender(api)

        await sender.send(
            "612345678",
            {"message": "Hola", "assignment_id": "asig789", "confirm_link": "https://x/c"},
        )

        assert api.bodies()[0]["type"] == "text"

    @pytest.mark.asyncio
    async def test_api_error_raises_external_service_error(self) -> None:
        api = FakeGraphApi(
            httpx.Response(401, json={"error": {"message": "Invalid OAuth access token"}})
        )
        sender = make_sender(api)

        with pytest.raises(ExternalServiceError) as exc_info:
            await sender.send("612345678", {"message": "Hola"})

        assert exc_info.value.status_code == 401
        assert exc_info.value.service == "whatsapp"
        assert "Invalid OAuth" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_success_without_message_id_is_error(self) -> None:
        api = FakeGraphApi(httpx.Response(200, json={"messages": []}))
        sender = make_sender(api)

        with pytest.raises(ExternalServiceError, match="HTTP 200"):
            await sender.send("612345678", {"message": "Hola"})

    @pytest.mark.asyncio
    async def test_non_json_response_is_error(self) -> None:
        api = FakeGraphApi(httpx.Response(502, text="Bad Gateway"))
        sender = make_sender(api)

        with pytest.raises(ExternalServiceError, match="HTTP 502"):
            await sender.send("612345678", {"message": "Hola"})

    @pytest.mark.asyncio
    async def test_invalid_input_is_rejected_before_http(self) -> None:
        api = FakeGraphApi()
        sender = make_sender(api)

        with pytest.raises(InvalidPayloadError):
            await sender.send("612345678", {})
        with pytest.raises(InvalidRecipientError):
            await sender.send("123", {"message": "Hola"})

        assert api.requests == []


class TestCreateWhatsAppSender:
    def test_returns_none_without_credentials(self) -> None:
        settings = Settings(whatsapp_access_token=None, whatsapp_phone_number_id=None)

        assert create_whatsapp_sender(settings) is None

    def test_builds_sender_with_credentials(self) -> None:
        settings = Settings(whatsapp_access_token="token", whatsapp_phone_number_id="123456")

        assert isinstance(create_whatsapp_sender(settings), WhatsAppSender)
