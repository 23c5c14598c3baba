"""SessionManager: superfície de controle das sessões (independente de transporte).

Centraliza create/status/list/destroy sobre o registry, e liga cada sessão
nova ao driver, ao broadcaster e ao store de credenciais. Resultados esperados
(nome inválido, duplicado, inexistente) voltam como valores, nunca como
exceção.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from multizap.application.broadcaster import EventBroadcaster
from multizap.application.session.machine import SessionStateMachine
from multizap.application.session.models import SessionHandle, SessionStatus
from multizap.application.session.registry import SessionAlreadyExistsError, SessionRegistry
from multizap.domain.credentials import CredentialSnapshot
from multizap.domain.names import InvalidSessionNameError, normalize_session_name
from multizap.domain.outbound import REASON_DESTROY_REQUESTED, REASON_SHUTDOWN
from multizap.domain.pairing import PairingThrottle
from multizap.domain.protocols.credential_store import CredentialStoreProtocol
from multizap.domain.protocols.driver import DriverFactory
from multizap.domain.protocols.subscriber import Subscriber
from multizap.observability.logging import get_logger


class CreateOutcome(StrEnum):
    ACCEPTED = "accepted"
    ALREADY_EXISTS = "already_exists"
    INVALID_NAME = "invalid_name"
    DRIVER_UNAVAILABLE = "driver_unavailable"


class DestroyOutcome(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class CreateResult:
    """Resultado de create_session (sempre carrega nome e motivo)."""

    outcome: CreateOutcome
    session: str
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome is CreateOutcome.ACCEPTED


class SessionManager:
    """Coordena criação e destruição de sessões isoladas entre si."""

    def __init__(
        self,
        registry: SessionRegistry,
        broadcaster: EventBroadcaster,
        credential_store: CredentialStoreProtocol,
        driver_factory: DriverFactory,
        throttle: PairingThrottle,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self._credentials = credential_store
        self._driver_factory = driver_factory
        self._throttle = throttle
        self._logger = logger or get_logger(__name__)

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self._broadcaster

    async def create_session(self, raw_name: str | None) -> CreateResult:
        """Valida o nome, reserva no registry e inicia o pareamento."""
        try:
            name = normalize_session_name(raw_name)
        except InvalidSessionNameError as exc:
            self._logger.info(
                "session_create_rejected",
                extra={"reason": exc.reason},
            )
            return CreateResult(CreateOutcome.INVALID_NAME, (raw_name or "").strip(), exc.reason)

        try:
            handle = await self._registry.register(name, self._build_handle)
        except SessionAlreadyExistsError:
            self._logger.info(
                "session_create_rejected",
                extra={"session_name": name, "reason": "already-exists"},
            )
            return CreateResult(CreateOutcome.ALREADY_EXISTS, name, "already-exists")
        except Exception as exc:
            # fábrica do driver falhou; nada foi inserido no registry
            self._logger.error(
                "driver_factory_failed",
                extra={"session_name": name, "error": str(exc)},
            )
            return CreateResult(CreateOutcome.DRIVER_UNAVAILABLE, name, str(exc))

        handle.machine.start()
        self._logger.info(
            "session_created",
            extra={"session_name": name, "threshold": self._throttle.threshold},
        )
        return CreateResult(CreateOutcome.ACCEPTED, name)

    def get_session_status(self, name: str) -> SessionStatus | None:
        handle = self._registry.get((name or "").strip())
        if handle is None or handle.closing:
            return None
        return handle.status()

    def list_sessions(self) -> list[SessionStatus]:
        return [handle.status() for handle in self._registry.handles() if not handle.closing]

    async def destroy_session(
        self, name: str, reason: str = REASON_DESTROY_REQUESTED
    ) -> DestroyOutcome:
        """Pede o teardown da sessão em background.

        O nome continua reservado (create devolve ALREADY_EXISTS) até o
        teardown terminar e `_release` tirar o handle do registry. Segunda
        chamada para o mesmo nome devolve NOT_FOUND.
        """
        handle = self._registry.get((name or "").strip())
        if handle is None or not handle.machine.request_teardown(reason):
            return DestroyOutcome.NOT_FOUND

        self._logger.info(
            "session_destroy_requested",
            extra={"session_name": handle.name, "reason": reason},
        )
        return DestroyOutcome.OK

    async def load_credentials(self, raw_name: str) -> CredentialSnapshot:
        """Snapshot da árvore persistida (sessão ativa ou não).

        Raises:
            InvalidSessionNameError: se o nome não é válido
        """
        name = normalize_session_name(raw_name)
        return await self._credentials.load(name)

    def subscribe(self, raw_name: str, subscriber: Subscriber) -> str:
        """Entra no canal da sessão (pode ser antes de criá-la).

        Raises:
            InvalidSessionNameError: se o nome não é válido
        """
        name = normalize_session_name(raw_name)
        self._broadcaster.join(name, subscriber)
        return name

    def unsubscribe(self, name: str, subscriber: Subscriber) -> None:
        self._broadcaster.leave(name, subscriber)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Encerra todas as sessões ativas (usado no shutdown da app)."""
        machines: list[SessionStateMachine] = []
        for handle in self._registry.handles():
            removed = await self._registry.remove(handle.name, handle)
            if removed is not None:
                removed.machine.request_teardown(REASON_SHUTDOWN)
                machines.append(removed.machine)

        if not machines:
            return

        waiters = [asyncio.create_task(m.wait_closed()) for m in machines]
        done, pending = await asyncio.wait(waiters, timeout=timeout)
        for task in pending:
            task.cancel()
        self._logger.info(
            "sessions_shutdown",
            extra={"closed": len(done), "timed_out": len(pending)},
        )

    # ------------------------------------------------------------ interno

    def _build_handle(self, name: str) -> SessionHandle:
        driver = self._driver_factory(name)
        machine = SessionStateMachine(
            name=name,
            driver=driver,
            broadcaster=self._broadcaster,
            credential_store=self._credentials,
            throttle=self._throttle,
            on_terminated=self._release,
        )
        return SessionHandle(name=name, machine=machine)

    async def _release(self, machine: SessionStateMachine) -> None:
        """Chamado pela máquina ao chegar em DESTROYED."""
        handle = self._registry.get(machine.name)
        if handle is not None and handle.machine is machine:
            await self._registry.remove(machine.name, handle)
        self._logger.info(
            "session_ended",
            extra={"session_name": machine.name, "reason": machine.end_reason},
        )
