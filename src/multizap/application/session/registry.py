"""Registry de sessões ativas (nome → handle).

Única estrutura compartilhada entre sessões. Só register/remove passam pelo
lock; consultas leem o mapa sem bloquear, e o estado interno de cada sessão
é mutado apenas pela própria máquina de estados.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from multizap.application.session.models import SessionHandle
from multizap.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class SessionAlreadyExistsError(Exception):
    """Já existe sessão ativa com este nome."""

    def __init__(self, name: str) -> None:
        super().__init__(f"session already exists: {name}")
        self.name = name


class SessionRegistry:
    """Mapa injetável de sessões ativas, com inserção check-and-insert atômica."""

    def __init__(self) -> None:
        self._handles: dict[str, SessionHandle] = {}
        self._lock = asyncio.Lock()

    async def register(
        self, name: str, build: Callable[[str], SessionHandle]
    ) -> SessionHandle:
        """Reserva o nome e insere o handle construído por `build`.

        A verificação e a inserção acontecem sob o mesmo lock; `build` só roda
        quando o nome está livre.

        Raises:
            SessionAlreadyExistsError: se o nome já está registrado
        """
        async with self._lock:
            if name in self._handles:
                raise SessionAlreadyExistsError(name)
            handle = build(name)
            self._handles[name] = handle

        logger.debug("session_registered", extra={"session_name": name})
        return handle

    def get(self, name: str) -> SessionHandle | None:
        """Retorna o handle ou None."""
        return self._handles.get(name)

    async def remove(
        self, name: str, expected: SessionHandle | None = None
    ) -> SessionHandle | None:
        """Remove o nome do registry; idempotente.

        Com `expected`, só remove se o handle registrado for exatamente esse
        (evita apagar uma sessão recriada com o mesmo nome).
        """
        async with self._lock:
            current = self._handles.get(name)
            if current is None:
                return None
            if expected is not None and current is not expected:
                return None
            del self._handles[name]

        logger.debug("session_unregistered", extra={"session_name": name})
        return current

    def list(self) -> list[tuple[str, bool]]:  # noqa: A003
        """Foto (não é visão viva) de (nome, conectado)."""
        return [(name, handle.connected) for name, handle in sorted(self._handles.items())]

    def handles(self) -> tuple[SessionHandle, ...]:
        return tuple(self._handles[name] for name in sorted(self._handles))

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, name: object) -> bool:
        return name in self._handles
