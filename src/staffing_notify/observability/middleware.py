"""Correlation id por request (propagado aos logs e às respostas internas)."""

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Ids do scheduler/worker: alfanumérico, hífen, underscore e ponto
_VALID_INCOMING_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Correlation id do request corrente ("" fora de request)."""
    return _correlation_id.get()


def resolve_correlation_id(incoming: str | None) -> str:
    """Reaproveita o id recebido se bem formado; senão gera um uuid4."""
    if incoming and _VALID_INCOMING_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Define o correlation id do request e o devolve no header de resposta."""

    def __init__(self, app: ASGIApp, header_name: str = CORRELATION_ID_HEADER) -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(self._header_name))
        token = _correlation_id.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            _correlation_id.reset(token)

        response.headers[self._header_name] = correlation_id
        return response
