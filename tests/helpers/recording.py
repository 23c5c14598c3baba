"""Dublês compartilhados pelos testes de sessão."""

from __future__ import annotations

from pathlib import Path

from multizap.domain.outbound import OutboundEvent
from multizap.domain.protocols.subscriber import Subscriber
from multizap.infra.drivers.scripted import ScriptedDriver


class RecordingSubscriber(Subscriber):
    """Assinante que só guarda o que recebe, na ordem."""

    def __init__(self) -> None:
        self.events: list[OutboundEvent] = []

    async def deliver(self, event: OutboundEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.type.value for event in self.events]

    def of_type(self, event_type: str) -> list[OutboundEvent]:
        return [event for event in self.events if event.type.value == event_type]


class DriverPool:
    """Fábrica de ScriptedDriver que guarda os drivers criados por nome."""

    def __init__(self, auth_root: Path, **driver_kwargs) -> None:
        self._auth_root = auth_root
        self._kwargs = driver_kwargs
        self.created: dict[str, list[ScriptedDriver]] = {}

    def __call__(self, name: str) -> ScriptedDriver:
        driver = ScriptedDriver(name=name, auth_dir=self._auth_root / f"session-{name}", **self._kwargs)
        self.created.setdefault(name, []).append(driver)
        return driver

    def last(self, name: str) -> ScriptedDriver:
        return self.created[name][-1]
