"""FSM de sessão: estados, eventos e transições.

Exporta:
- SessionState: 5 estados do ciclo de vida
- SessionEvent: gatilhos canônicos
- payloads de eventos (QrIssued, Ready, ...)
- validate_transition: validador puro
"""

from multizap.domain.session.events import (
    AuthFailure,
    Disconnected,
    DriverEvent,
    DriverInitFailed,
    MachineInput,
    MessageReceived,
    QrIssued,
    Ready,
    SessionEvent,
    TeardownRequested,
)
from multizap.domain.session.states import ACTIVE_STATES, TERMINAL_STATES, SessionState
from multizap.domain.session.transitions import TRANSITIONS, validate_transition

__all__ = [
    "ACTIVE_STATES",
    "AuthFailure",
    "Disconnected",
    "DriverEvent",
    "DriverInitFailed",
    "MachineInput",
    "MessageReceived",
    "QrIssued",
    "Ready",
    "SessionEvent",
    "SessionState",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "TeardownRequested",
    "validate_transition",
]
