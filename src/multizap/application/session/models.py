"""Modelos de sessão mantidos pelo registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from multizap.domain.session.states import SessionState

if TYPE_CHECKING:
    from multizap.application.session.machine import SessionStateMachine


@dataclass(frozen=True, slots=True)
class SessionStatus:
    """Foto do estado de uma sessão no momento da consulta."""

    name: str
    connected: bool
    qr_present: bool
    state: SessionState
    attempts: int
    created_at: datetime
    state_since: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "connected": self.connected,
            "qr_present": self.qr_present,
            "state": self.state.value,
            "attempts": self.attempts,
            "created_at": self.created_at.isoformat(),
            "state_since": self.state_since.isoformat(),
        }


@dataclass(slots=True)
class SessionHandle:
    """Entrada do registry: uma sessão nomeada e a máquina que a conduz.

    O driver pertence à máquina; a máquina pertence ao handle.
    """

    name: str
    machine: SessionStateMachine
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def state(self) -> SessionState:
        return self.machine.state

    @property
    def connected(self) -> bool:
        return self.machine.connected

    @property
    def closing(self) -> bool:
        """Teardown em andamento: o nome segue reservado, mas a sessão some das consultas."""
        return self.machine.teardown_requested

    def status(self) -> SessionStatus:
        history = self.machine.history()
        return SessionStatus(
            name=self.name,
            connected=self.machine.connected,
            qr_present=self.machine.qr_present,
            state=self.machine.state,
            attempts=self.machine.attempts,
            created_at=self.created_at,
            state_since=history[-1].timestamp if history else self.created_at,
        )
