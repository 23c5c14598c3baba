"""Fábrica da aplicação FastAPI.

Não há `app` em nível de módulo: PAIRING_MAX_ATTEMPTS é obrigatório, então a
aplicação só é montada quando o ambiente está configurado. Para subir:

    uvicorn --factory multizap.api.app:create_app
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from multizap.api.routes import router
from multizap.application.broadcaster import EventBroadcaster
from multizap.application.session.manager import SessionManager
from multizap.application.session.registry import SessionRegistry
from multizap.config.settings import Settings, get_settings
from multizap.domain.pairing import PairingThrottle
from multizap.domain.protocols.credential_store import CredentialStoreProtocol
from multizap.domain.protocols.driver import DriverFactory
from multizap.infra.credential_store import create_credential_store
from multizap.infra.drivers import create_driver_factory
from multizap.observability.logging import configure_logging, get_logger
from multizap.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


def create_session_manager(
    settings: Settings,
    driver_factory: DriverFactory | None = None,
    credential_store: CredentialStoreProtocol | None = None,
) -> SessionManager:
    """Monta o SessionManager com as dependências derivadas de settings."""
    return SessionManager(
        registry=SessionRegistry(),
        broadcaster=EventBroadcaster(),
        credential_store=credential_store or create_credential_store(settings),
        driver_factory=driver_factory or create_driver_factory(settings),
        throttle=PairingThrottle(settings.pairing_max_attempts),
    )


def create_app(
    settings: Settings | None = None,
    driver_factory: DriverFactory | None = None,
    credential_store: CredentialStoreProtocol | None = None,
) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name, settings.log_format)

    validation_errors = settings.validate_all()
    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    manager = create_session_manager(settings, driver_factory, credential_store)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "service_started",
            extra={
                "environment": settings.environment,
                "driver_backend": settings.driver_backend,
                "pairing_max_attempts": settings.pairing_max_attempts,
            },
        )
        try:
            yield
        finally:
            await manager.shutdown(timeout=settings.driver_shutdown_grace_seconds * 2)
            logger.info("service_stopped")

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=lifespan)
    app.add_middleware(CorrelationIdMiddleware, header_name=settings.correlation_id_header)
    app.include_router(router)

    app.state.settings = settings
    app.state.session_manager = manager

    return app
