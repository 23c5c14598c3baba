"""Estados do ciclo de vida de uma sessão pareada com o driver.

Fluxo canônico: CREATED → PAIRING → CONNECTED → DISCONNECTED → DESTROYED.
Atalho permitido: PAIRING → DESTROYED (tentativas esgotadas, falha de
inicialização ou teardown externo antes de conectar).
"""

from __future__ import annotations

from enum import StrEnum


class SessionState(StrEnum):
    """Estados de uma sessão."""

    CREATED = "CREATED"
    """Handle reservado no registry; driver ainda não inicializou."""

    PAIRING = "PAIRING"
    """Driver inicializando; QR codes sendo emitidos."""

    CONNECTED = "CONNECTED"
    """Pareamento concluído; mensagens fluindo."""

    DISCONNECTED = "DISCONNECTED"
    """Conexão perdida ou autenticação recusada; teardown pendente."""

    DESTROYED = "DESTROYED"
    """Driver liberado e sessão removida do registry (terminal)."""


TERMINAL_STATES = frozenset({SessionState.DESTROYED})
"""Estados sem transições de saída."""

ACTIVE_STATES = frozenset({SessionState.PAIRING, SessionState.CONNECTED})
"""Estados em que o driver pode emitir eventos válidos."""
