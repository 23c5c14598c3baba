"""Protocolos de domínio (contratos para colaboradores externos)."""

from multizap.domain.protocols.credential_store import CredentialStoreProtocol
from multizap.domain.protocols.driver import (
    DriverError,
    DriverFactory,
    DriverInitError,
    DriverListener,
    SessionDriver,
)
from multizap.domain.protocols.subscriber import Subscriber

__all__ = [
    "CredentialStoreProtocol",
    "DriverError",
    "DriverFactory",
    "DriverInitError",
    "DriverListener",
    "SessionDriver",
    "Subscriber",
]
