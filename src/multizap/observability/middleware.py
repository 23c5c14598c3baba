"""Middlewares e contexto de observabilidade."""

from __future__ import annotations

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_session_name: ContextVar[str] = ContextVar("session_name", default="")


def get_correlation_id() -> str:
    """Retorna o correlation_id corrente (ou vazio)."""

    return _correlation_id.get()


def get_session_name() -> str:
    """Retorna a sessão associada à task corrente (ou vazio)."""

    return _session_name.get()


def bind_session_name(session_name: str) -> None:
    """Associa a task corrente a uma sessão.

    Cada consumidor de sessão roda na sua própria task, que recebe uma cópia
    do contexto; o valor não vaza para outras sessões.
    """

    _session_name.set(session_name)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Gera ou propaga correlation_id em cada request."""

    def __init__(self, app, header_name: str = "x-correlation-id") -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self._header_name = header_name.lower()

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        incoming = request.headers.get(self._header_name)
        correlation_id = incoming or str(uuid.uuid4())
        token = _correlation_id.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            _correlation_id.reset(token)

        response.headers[self._header_name] = correlation_id
        return response
