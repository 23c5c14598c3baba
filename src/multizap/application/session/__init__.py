"""Package `session`: ciclo de vida das sessões.

Exports principais:
- SessionStateMachine: FSM de uma sessão (de session/machine.py)
- SessionRegistry: mapa de sessões ativas (de session/registry.py)
- SessionManager: superfície de controle (de session/manager.py)
"""

from __future__ import annotations

from multizap.application.session.machine import SessionStateMachine, StateTransition
from multizap.application.session.manager import (
    CreateOutcome,
    CreateResult,
    DestroyOutcome,
    SessionManager,
)
from multizap.application.session.models import SessionHandle, SessionStatus
from multizap.application.session.registry import SessionAlreadyExistsError, SessionRegistry

__all__ = [
    "CreateOutcome",
    "CreateResult",
    "DestroyOutcome",
    "SessionAlreadyExistsError",
    "SessionHandle",
    "SessionManager",
    "SessionRegistry",
    "SessionStateMachine",
    "SessionStatus",
    "StateTransition",
]
