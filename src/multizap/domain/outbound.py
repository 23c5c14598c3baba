"""Eventos publicados para os assinantes de uma sessão."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

# Motivos padronizados de encerramento
REASON_ATTEMPT_LIMIT = "attempt-limit-exceeded"
REASON_AUTH_FAILURE = "auth-failure"
REASON_DESTROY_REQUESTED = "destroy-requested"
REASON_DRIVER_ERROR = "driver-error"
REASON_INIT_FAILED = "init-failed"
REASON_SHUTDOWN = "shutdown"


class OutboundEventType(StrEnum):
    """Tipos de evento no canal de uma sessão (nomes do protocolo WS)."""

    QR = "qr"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"
    AUTH_FAILURE = "authFailure"
    SESSION_ENDED = "sessionEnded"
    CREDENTIALS = "credentials"


@dataclass(frozen=True, slots=True)
class OutboundEvent:
    """Evento entregue aos assinantes do canal de uma sessão."""

    session: str
    type: OutboundEventType
    data: dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "session": self.session,
            "data": dict(self.data),
            "emitted_at": self.emitted_at.isoformat(),
        }


def qr_event(session: str, attempt: int, payload: str, remaining: int | None = None) -> OutboundEvent:
    data: dict[str, Any] = {"attempt": attempt, "payload": payload}
    if remaining is not None:
        data["remaining"] = remaining
    return OutboundEvent(session, OutboundEventType.QR, data)


def connected_event(session: str, info: dict[str, Any]) -> OutboundEvent:
    return OutboundEvent(session, OutboundEventType.CONNECTED, {"info": dict(info)})


def disconnected_event(session: str, reason: str) -> OutboundEvent:
    return OutboundEvent(session, OutboundEventType.DISCONNECTED, {"reason": reason})


def message_event(session: str, sender: str, body: str) -> OutboundEvent:
    return OutboundEvent(session, OutboundEventType.MESSAGE, {"from": sender, "body": body})


def auth_failure_event(session: str, reason: str) -> OutboundEvent:
    return OutboundEvent(session, OutboundEventType.AUTH_FAILURE, {"reason": reason})


def session_ended_event(session: str, reason: str, detail: str | None = None) -> OutboundEvent:
    data: dict[str, Any] = {"reason": reason}
    if detail:
        data["detail"] = detail
    return OutboundEvent(session, OutboundEventType.SESSION_ENDED, data)


def credentials_event(session: str, save: dict[str, Any], snapshot: dict[str, Any]) -> OutboundEvent:
    return OutboundEvent(
        session,
        OutboundEventType.CREDENTIALS,
        {"saved": save, "snapshot": snapshot},
    )
