"""Driver em memória, controlado pelo chamador (apenas dev/testes).

⚠️ Não conecta a nenhum serviço de mensagens.
- Reproduz um roteiro de eventos quando initialize() roda
- Expõe emit_* para disparar eventos manualmente
- `emit` não filtra eventos após destroy(), para reproduzir callbacks tardios
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from multizap.domain.protocols.driver import DriverInitError, DriverListener, SessionDriver
from multizap.domain.session.events import (
    AuthFailure,
    Disconnected,
    DriverEvent,
    MessageReceived,
    QrIssued,
    Ready,
)
from multizap.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class ScriptedDriver(SessionDriver):
    """Driver roteirizado."""

    def __init__(
        self,
        name: str,
        auth_dir: Path,
        script: Sequence[DriverEvent] = (),
        fail_with: str | None = None,
        hold_initialize: bool = False,
    ) -> None:
        self._name = name
        self._auth_dir = Path(auth_dir)
        self._script = tuple(script)
        self._fail_with = fail_with
        self._hold_initialize = hold_initialize
        self._listener: DriverListener | None = None
        self._released = asyncio.Event()
        self.initialize_calls = 0
        self.destroy_calls = 0
        self.destroyed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def auth_dir(self) -> Path:
        return self._auth_dir

    def set_listener(self, listener: DriverListener) -> None:
        self._listener = listener

    async def initialize(self) -> None:
        self.initialize_calls += 1
        logger.debug("scripted_driver_initialize", extra={"session_name": self._name})
        if self._fail_with is not None:
            raise DriverInitError(self._fail_with)

        for event in self._script:
            if self.destroyed:
                return
            self.emit(event)
            await asyncio.sleep(0)

        if self._hold_initialize:
            # simula um initialize() longo, que só termina no destroy()
            await self._released.wait()

    async def destroy(self) -> None:
        self.destroy_calls += 1
        if self.destroyed:
            return
        self.destroyed = True
        self._released.set()
        logger.debug("scripted_driver_destroyed", extra={"session_name": self._name})

    # ------------------------------------------------------------ disparo manual

    def emit(self, event: DriverEvent) -> None:
        if self._listener is None:
            logger.debug("scripted_driver_no_listener", extra={"session_name": self._name})
            return
        self._listener(event)

    def emit_qr(self, payload: str) -> None:
        self.emit(QrIssued(payload=payload))

    def emit_ready(self, info: dict[str, Any] | None = None) -> None:
        self.emit(Ready(info=info or {}))

    def emit_message(self, sender: str, body: str) -> None:
        self.emit(MessageReceived(sender=sender, body=body))

    def emit_auth_failure(self, reason: str) -> None:
        self.emit(AuthFailure(reason=reason))

    def emit_disconnected(self, reason: str) -> None:
        self.emit(Disconnected(reason=reason))
