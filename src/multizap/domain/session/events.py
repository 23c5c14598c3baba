"""Eventos que alimentam a máquina de estados de uma sessão.

Dois níveis:
- SessionEvent: gatilho canônico usado na tabela de transições
- DriverEvent: payload concreto (emitido pelo driver ou gerado internamente)

Cada payload declara o gatilho correspondente em `trigger`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar


class SessionEvent(StrEnum):
    """Gatilhos canônicos do FSM."""

    # === Emitidos pelo driver ===
    QR_ISSUED = "QR_ISSUED"
    READY = "READY"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    AUTH_FAILURE = "AUTH_FAILURE"
    DISCONNECTED = "DISCONNECTED"

    # === Internos ===
    INITIALIZE_STARTED = "INITIALIZE_STARTED"
    """initialize() do driver foi disparado."""

    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    """Limite de QR codes ultrapassado."""

    INIT_FAILED = "INIT_FAILED"
    """initialize() do driver falhou."""

    TEARDOWN = "TEARDOWN"
    """Liberação do driver (pedido externo ou após desconexão)."""


@dataclass(frozen=True, slots=True)
class QrIssued:
    """Novo QR code emitido pelo driver.

    `attempt` é atribuído pela máquina de estados, não pelo driver.
    """

    trigger: ClassVar[SessionEvent] = SessionEvent.QR_ISSUED
    payload: str
    attempt: int | None = None


@dataclass(frozen=True, slots=True)
class Ready:
    """Pareamento concluído."""

    trigger: ClassVar[SessionEvent] = SessionEvent.READY
    info: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MessageReceived:
    """Mensagem recebida numa sessão conectada."""

    trigger: ClassVar[SessionEvent] = SessionEvent.MESSAGE_RECEIVED
    sender: str
    body: str


@dataclass(frozen=True, slots=True)
class AuthFailure:
    """Credenciais recusadas pelo serviço de mensagens."""

    trigger: ClassVar[SessionEvent] = SessionEvent.AUTH_FAILURE
    reason: str


@dataclass(frozen=True, slots=True)
class Disconnected:
    """Conexão encerrada pelo lado do driver."""

    trigger: ClassVar[SessionEvent] = SessionEvent.DISCONNECTED
    reason: str


@dataclass(frozen=True, slots=True)
class DriverInitFailed:
    """initialize() lançou exceção (reportado uma única vez)."""

    trigger: ClassVar[SessionEvent] = SessionEvent.INIT_FAILED
    reason: str


@dataclass(frozen=True, slots=True)
class TeardownRequested:
    """Pedido de destruição vindo de fora da sessão."""

    trigger: ClassVar[SessionEvent] = SessionEvent.TEARDOWN
    reason: str = "destroy-requested"


DriverEvent = QrIssued | Ready | MessageReceived | AuthFailure | Disconnected
"""Eventos que um driver pode emitir."""

MachineInput = DriverEvent | DriverInitFailed | TeardownRequested
"""Tudo que pode entrar na fila de uma sessão."""
