"""Tabela de transições do FSM de sessão.

- TRANSITIONS[(current_state, event)] = next_state
- Estados terminais não aparecem como origem
- CONNECTED → DESTROYED não existe: DISCONNECTED é sempre visitado antes
- Validação pura: sem side effects
"""

from __future__ import annotations

from multizap.domain.session.events import SessionEvent
from multizap.domain.session.states import TERMINAL_STATES, SessionState

TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    # === CREATED → ... ===
    (SessionState.CREATED, SessionEvent.INITIALIZE_STARTED): SessionState.PAIRING,
    (SessionState.CREATED, SessionEvent.INIT_FAILED): SessionState.DESTROYED,
    (SessionState.CREATED, SessionEvent.TEARDOWN): SessionState.DESTROYED,
    # === PAIRING → ... ===
    (SessionState.PAIRING, SessionEvent.QR_ISSUED): SessionState.PAIRING,
    (SessionState.PAIRING, SessionEvent.READY): SessionState.CONNECTED,
    (SessionState.PAIRING, SessionEvent.AUTH_FAILURE): SessionState.DISCONNECTED,
    (SessionState.PAIRING, SessionEvent.DISCONNECTED): SessionState.DISCONNECTED,
    (SessionState.PAIRING, SessionEvent.ATTEMPTS_EXHAUSTED): SessionState.DESTROYED,
    (SessionState.PAIRING, SessionEvent.INIT_FAILED): SessionState.DESTROYED,
    (SessionState.PAIRING, SessionEvent.TEARDOWN): SessionState.DESTROYED,
    # === CONNECTED → ... ===
    (SessionState.CONNECTED, SessionEvent.MESSAGE_RECEIVED): SessionState.CONNECTED,
    (SessionState.CONNECTED, SessionEvent.DISCONNECTED): SessionState.DISCONNECTED,
    (SessionState.CONNECTED, SessionEvent.AUTH_FAILURE): SessionState.DISCONNECTED,
    # === DISCONNECTED → ... ===
    (SessionState.DISCONNECTED, SessionEvent.TEARDOWN): SessionState.DESTROYED,
    # DESTROYED: sem transições de saída
}


def validate_transition(
    current_state: SessionState, event: SessionEvent
) -> tuple[bool, SessionState | None, str]:
    """Valida se uma transição é permitida.

    Retorna:
    - (True, next_state, ""): transição válida
    - (False, None, motivo): transição inválida

    Nunca lança exceção; apenas valida.
    """
    if current_state in TERMINAL_STATES:
        return (
            False,
            None,
            f"Terminal state {current_state} has no transitions",
        )

    key = (current_state, event)
    if key not in TRANSITIONS:
        return (
            False,
            None,
            f"No transition from {current_state} on event {event}",
        )

    return True, TRANSITIONS[key], ""
