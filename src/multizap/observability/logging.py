"""Configuração de logging estruturado (JSON)."""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from multizap.observability.middleware import get_correlation_id, get_session_name

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(session_name)s] %(message)s"


class SessionContextFilter(logging.Filter):
    """Insere correlation_id, session_name e service no record de log.

    Importante: nunca adicionar conteúdo de credenciais ou corpo de mensagens.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        # Preserva valores passados explicitamente via `extra`.
        existing = getattr(record, "correlation_id", None)
        record.correlation_id = existing if existing else get_correlation_id()
        session = getattr(record, "session_name", None)
        record.session_name = session if session else get_session_name()
        record.service = self._service_name
        return True


def configure_logging(level: str, service_name: str, fmt: str = "json") -> None:
    """Configura logging com campos padrão do serviço (json | text)."""

    if fmt.lower() == "text":
        formatter: logging.Formatter = logging.Formatter(_TEXT_FORMAT)
    else:
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s "
            "%(correlation_id)s %(session_name)s %(service)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SessionContextFilter(service_name))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    """Retorna logger simples; o filtro injeta service/correlation_id/sessão."""

    return logging.getLogger(name)


def log_task_failure(logger: logging.Logger, component: str, exc: BaseException) -> None:
    """Log de falha não tratada em task de background.

    Args:
        logger: Logger instance
        component: Nome do componente (ex: "session_consumer", "driver_initialize")
        exc: Exceção capturada
    """
    logger.error(
        f"Unhandled failure in {component}",
        extra={
            "component": component,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
