"""Máquina de estados de uma sessão (pareamento → conexão → encerramento).

Os callbacks do driver só enfileiram; uma única task consome a fila da sessão,
um evento por vez, na ordem de chegada. Assim não há reentrância entre
callbacks sobrepostos e nenhum lock interno é necessário.

Regras:
- QR além do limite do PairingThrottle encerra a sessão
- Ready dispara a persistência das credenciais e publica o snapshot
- Falha do driver depois do Ready vira desconexão ("driver-error")
- CONNECTED nunca vai direto para DESTROYED: DISCONNECTED é visitado antes
- Eventos depois de DESTROYED (ou depois de pedido o teardown) são descartados
- Falha num handler é registrada e não derruba o consumidor
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from multizap.application.broadcaster import EventBroadcaster
from multizap.domain.outbound import (
    REASON_ATTEMPT_LIMIT,
    REASON_AUTH_FAILURE,
    REASON_DESTROY_REQUESTED,
    REASON_DRIVER_ERROR,
    REASON_INIT_FAILED,
    OutboundEvent,
    auth_failure_event,
    connected_event,
    credentials_event,
    disconnected_event,
    message_event,
    qr_event,
    session_ended_event,
)
from multizap.domain.pairing import PairingThrottle
from multizap.domain.protocols.credential_store import CredentialStoreProtocol
from multizap.domain.protocols.driver import SessionDriver
from multizap.domain.session import (
    AuthFailure,
    Disconnected,
    DriverEvent,
    DriverInitFailed,
    MachineInput,
    MessageReceived,
    QrIssued,
    Ready,
    SessionEvent,
    SessionState,
    TeardownRequested,
    validate_transition,
)
from multizap.observability.logging import get_logger, log_task_failure
from multizap.observability.middleware import bind_session_name

logger: logging.Logger = get_logger(__name__)

TerminationCallback = Callable[["SessionStateMachine"], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class StateTransition:
    """Transição registrada no histórico da sessão."""

    from_state: SessionState
    to_state: SessionState
    trigger: SessionEvent
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class SessionStateMachine:
    """Conduz o ciclo de vida de uma sessão sobre um driver exclusivo."""

    def __init__(
        self,
        name: str,
        driver: SessionDriver,
        broadcaster: EventBroadcaster,
        credential_store: CredentialStoreProtocol,
        throttle: PairingThrottle,
        on_terminated: TerminationCallback | None = None,
    ) -> None:
        self._name = name
        self._driver = driver
        self._broadcaster = broadcaster
        self._credentials = credential_store
        self._throttle = throttle
        self._on_terminated = on_terminated

        self._state = SessionState.CREATED
        self._attempts = 0
        self._last_qr: str | None = None
        self._ready_info: dict[str, Any] = {}
        self._end_reason: str | None = None
        self._history: list[StateTransition] = []

        self._queue: asyncio.Queue[MachineInput] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._init_task: asyncio.Task[None] | None = None
        self._teardown_requested = False
        self._closed = asyncio.Event()

    # ------------------------------------------------------------ leitura

    @property
    def name(self) -> str:
        return self._name

    @property
    def driver(self) -> SessionDriver:
        return self._driver

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def qr_present(self) -> bool:
        return self._state is SessionState.PAIRING and self._last_qr is not None

    @property
    def last_qr(self) -> str | None:
        return self._last_qr if self._state is SessionState.PAIRING else None

    @property
    def ready_info(self) -> dict[str, Any]:
        return dict(self._ready_info)

    @property
    def end_reason(self) -> str | None:
        return self._end_reason

    @property
    def teardown_requested(self) -> bool:
        return self._teardown_requested

    def history(self) -> list[StateTransition]:
        return list(self._history)

    # ------------------------------------------------------------ controle

    def start(self) -> None:
        """Marca o início do pareamento e dispara initialize() em background."""
        if self._consumer is not None:
            return

        self._driver.set_listener(self._on_driver_event)
        self._apply(SessionEvent.INITIALIZE_STARTED)
        self._attempts = 0

        self._consumer = self._spawn(self._run(), "consumer")
        self._init_task = self._spawn(self._initialize_driver(), "initialize")

    def request_teardown(self, reason: str = REASON_DESTROY_REQUESTED) -> bool:
        """Pede a destruição da sessão; seguro com initialize() pendente.

        A partir daqui todo evento do driver é descartado. Retorna False se a
        sessão já estava encerrando.
        """
        if self._teardown_requested or self._state is SessionState.DESTROYED:
            return False

        self._teardown_requested = True
        self._queue.put_nowait(TeardownRequested(reason=reason))
        if self._consumer is None:
            self._consumer = self._spawn(self._run(), "consumer")

        logger.info(
            "session_teardown_requested",
            extra={"session_name": self._name, "reason": reason},
        )
        return True

    async def wait_closed(self) -> None:
        """Aguarda a sessão chegar a DESTROYED."""
        await self._closed.wait()

    async def idle(self) -> None:
        """Aguarda até que todos os eventos já enfileirados sejam processados."""
        await self._queue.join()

    # ------------------------------------------------------------ entrada

    def _on_driver_event(self, event: DriverEvent) -> None:
        if self._teardown_requested or self._state is SessionState.DESTROYED:
            logger.debug(
                "stale_driver_event_discarded",
                extra={"session_name": self._name, "trigger": event.trigger.value},
            )
            return
        self._queue.put_nowait(event)

    async def _initialize_driver(self) -> None:
        bind_session_name(self._name)
        try:
            await self._driver.initialize()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._teardown_requested or self._state is SessionState.DESTROYED:
                return
            self._queue.put_nowait(DriverInitFailed(reason=str(exc) or type(exc).__name__))

    async def _run(self) -> None:
        bind_session_name(self._name)
        try:
            while self._state is not SessionState.DESTROYED:
                item = await self._queue.get()
                try:
                    await self._dispatch(item)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    log_task_failure(logger, "session_event_handler", exc)
                finally:
                    self._queue.task_done()
        finally:
            self._drain()
            self._closed.set()

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()

    async def _dispatch(self, item: MachineInput) -> None:
        if isinstance(item, TeardownRequested):
            await self._handle_teardown_request(item)
            return

        if self._teardown_requested:
            return

        if isinstance(item, DriverInitFailed) and self._state is SessionState.CONNECTED:
            # driver caiu depois do Ready: DISCONNECTED antes do teardown
            logger.error(
                "driver_failed_after_ready",
                extra={"session_name": self._name, "error": item.reason},
            )
            item = Disconnected(reason=REASON_DRIVER_ERROR)

        ok, _, error = validate_transition(self._state, item.trigger)
        if not ok:
            # ex.: QR depois de CONNECTED, segundo Ready, mensagem durante pareamento
            logger.debug(
                "driver_event_ignored",
                extra={"session_name": self._name, "trigger": item.trigger.value, "error": error},
            )
            return

        if isinstance(item, QrIssued):
            await self._handle_qr(item)
        elif isinstance(item, Ready):
            await self._handle_ready(item)
        elif isinstance(item, MessageReceived):
            await self._publish(message_event(self._name, item.sender, item.body))
        elif isinstance(item, AuthFailure):
            await self._handle_auth_failure(item)
        elif isinstance(item, Disconnected):
            await self._handle_disconnected(item)
        elif isinstance(item, DriverInitFailed):
            await self._handle_init_failed(item)

    # ------------------------------------------------------------ handlers

    async def _handle_qr(self, event: QrIssued) -> None:
        self._attempts += 1
        self._last_qr = event.payload
        remaining = self._throttle.remaining(self._attempts)
        await self._publish(qr_event(self._name, self._attempts, event.payload, remaining))

        if self._throttle.allows(self._attempts):
            return

        logger.warning(
            "pairing_attempts_exhausted",
            extra={
                "session_name": self._name,
                "attempts": self._attempts,
                "threshold": self._throttle.threshold,
            },
        )
        await self._publish(disconnected_event(self._name, REASON_ATTEMPT_LIMIT))
        await self._teardown(REASON_ATTEMPT_LIMIT, SessionEvent.ATTEMPTS_EXHAUSTED)

    async def _handle_ready(self, event: Ready) -> None:
        self._apply(SessionEvent.READY, attempts=self._attempts)
        self._last_qr = None
        self._ready_info = dict(event.info)
        await self._publish(connected_event(self._name, self._ready_info))
        await self._persist_credentials()

    async def _handle_auth_failure(self, event: AuthFailure) -> None:
        self._apply(SessionEvent.AUTH_FAILURE, reason=event.reason)
        await self._publish(auth_failure_event(self._name, event.reason))
        await self._publish(disconnected_event(self._name, REASON_AUTH_FAILURE))
        await self._teardown(REASON_AUTH_FAILURE)

    async def _handle_disconnected(self, event: Disconnected) -> None:
        self._apply(SessionEvent.DISCONNECTED, reason=event.reason)
        await self._publish(disconnected_event(self._name, event.reason))
        await self._teardown(event.reason)

    async def _handle_init_failed(self, event: DriverInitFailed) -> None:
        logger.error(
            "driver_init_failed",
            extra={"session_name": self._name, "error": event.reason},
        )
        await self._teardown(REASON_INIT_FAILED, SessionEvent.INIT_FAILED, detail=event.reason)

    async def _handle_teardown_request(self, event: TeardownRequested) -> None:
        if self._state is SessionState.DESTROYED:
            return
        if self._state is SessionState.CONNECTED:
            self._apply(SessionEvent.DISCONNECTED, reason=event.reason)
            await self._publish(disconnected_event(self._name, event.reason))
        await self._teardown(event.reason)

    # ------------------------------------------------------------ efeitos

    async def _persist_credentials(self) -> None:
        try:
            result = await self._credentials.save(self._name, self._driver.auth_dir)
            snapshot = await self._credentials.load(self._name)
        except Exception as exc:
            # persistência nunca é fatal para a sessão
            logger.error(
                "credential_persistence_failed",
                extra={"session_name": self._name, "error": str(exc)},
            )
            return
        await self._publish(credentials_event(self._name, result.to_dict(), snapshot.to_dict()))

    async def _teardown(
        self,
        reason: str,
        trigger: SessionEvent = SessionEvent.TEARDOWN,
        detail: str | None = None,
    ) -> None:
        self._teardown_requested = True

        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()

        try:
            await self._driver.destroy()
        except Exception as exc:
            logger.warning(
                "driver_destroy_failed",
                extra={"session_name": self._name, "error": str(exc)},
            )

        final_attempts = self._attempts
        self._attempts = 0
        self._last_qr = None
        self._end_reason = reason
        self._apply(trigger, reason=reason, attempts=final_attempts)

        await self._publish(session_ended_event(self._name, reason, detail))

        if self._on_terminated is not None:
            try:
                await self._on_terminated(self)
            except Exception as exc:
                log_task_failure(logger, "session_termination_callback", exc)

    def _apply(self, trigger: SessionEvent, **metadata: Any) -> None:
        ok, target, error = validate_transition(self._state, trigger)
        if not ok or target is None:
            raise RuntimeError(f"session {self._name}: {error}")
        if target is self._state:
            return

        transition = StateTransition(
            from_state=self._state,
            to_state=target,
            trigger=trigger,
            metadata=metadata,
        )
        self._history.append(transition)
        self._state = target
        logger.info(
            "session_state_changed",
            extra={
                "session_name": self._name,
                "from": transition.from_state.value,
                "to": transition.to_state.value,
                "trigger": trigger.value,
            },
        )

    async def _publish(self, event: OutboundEvent) -> None:
        try:
            await self._broadcaster.publish(self._name, event)
        except Exception as exc:
            logger.warning(
                "session_publish_failed",
                extra={
                    "session_name": self._name,
                    "event_type": event.type.value,
                    "error": str(exc),
                },
            )

    def _spawn(self, coro: Coroutine[Any, Any, None], role: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=f"session:{self._name}:{role}")
        task.add_done_callback(self._log_task_result)
        return task

    @staticmethod
    def _log_task_result(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_task_failure(logger, task.get_name(), exc)
