"""Contrato do driver de automação de mensagens (colaborador externo)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from multizap.domain.session.events import DriverEvent

DriverListener = Callable[[DriverEvent], None]
"""Callback síncrono chamado pelo driver no event loop para cada evento."""


class DriverError(Exception):
    """Falha genérica do driver."""


class DriverInitError(DriverError):
    """initialize() não conseguiu subir o cliente."""


class SessionDriver(ABC):
    """Driver de uma única sessão.

    Contrato:
    - initialize() começa em background; pode emitir zero ou mais `qr` e
      depois exatamente um `ready` ou `auth_failure`
    - após `ready`: zero ou mais `message` e no máximo um `disconnected`
    - destroy() é idempotente e interrompe qualquer evento futuro
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Nome da sessão (clientId)."""

    @property
    @abstractmethod
    def auth_dir(self) -> Path:
        """Diretório volátil onde o driver grava as credenciais."""

    @abstractmethod
    def set_listener(self, listener: DriverListener) -> None:
        """Registra o destino dos eventos emitidos."""

    @abstractmethod
    async def initialize(self) -> None:
        """Sobe o cliente.

        Raises:
            DriverInitError: se o cliente não puder ser iniciado
        """

    @abstractmethod
    async def destroy(self) -> None:
        """Libera recursos; chamadas repetidas são no-op."""


DriverFactory = Callable[[str], SessionDriver]
"""Cria um driver novo para o nome de sessão informado."""
