"""Observabilidade: logging estruturado e contexto por request/sessão."""

from multizap.observability.logging import configure_logging, get_logger
from multizap.observability.middleware import (
    CorrelationIdMiddleware,
    bind_session_name,
    get_correlation_id,
    get_session_name,
)

__all__ = [
    "CorrelationIdMiddleware",
    "bind_session_name",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "get_session_name",
]
