"""Testes do SessionManager (create/status/list/destroy/subscribe)."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from multizap.application.broadcaster import EventBroadcaster
from multizap.application.session.manager import CreateOutcome, DestroyOutcome, SessionManager
from multizap.application.session.registry import SessionRegistry
from multizap.domain.names import InvalidSessionNameError
from multizap.domain.pairing import PairingThrottle
from multizap.domain.session import SessionState
from multizap.infra.credential_store import FileCredentialStore
from tests.helpers.recording import DriverPool, RecordingSubscriber


def _manager(tmp_path: Path, drivers, threshold: int = 3) -> SessionManager:
    return SessionManager(
        registry=SessionRegistry(),
        broadcaster=EventBroadcaster(),
        credential_store=FileCredentialStore(tmp_path / "store"),
        driver_factory=drivers,
        throttle=PairingThrottle(threshold),
    )


class TestCreateSession:
    """Criação: nome válido, duplicado e inválido."""

    @pytest.mark.asyncio
    async def test_create_then_status(self, tmp_path, drivers: DriverPool) -> None:
        manager = _manager(tmp_path, drivers)

        result = await manager.create_session("alice")
        await asyncio.sleep(0)

        assert result.accepted
        assert result.session == "alice"
        status = manager.get_session_status("alice")
        assert status is not None
        assert status.connected is False
        assert status.state is SessionState.PAIRING
        assert status.state_since >= status.created_at
        assert drivers.last("alice").initialize_calls == 1

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, tmp_path, drivers: DriverPool) -> None:
        manager = _manager(tmp_path, drivers)
        await manager.create_session("alice")

        result = await manager.create_session("alice")

        assert result.outcome is CreateOutcome.ALREADY_EXISTS
        assert len(drivers.created["alice"]) == 1

        await manager.shutdown()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("raw", "reason"),
        [("", "empty"), ("   ", "empty"), (None, "empty"), ("a/b", "invalid-characters")],
    )
    async def test_invalid_name_rejected(self, tmp_path, drivers, raw, reason) -> None:
        manager = _manager(tmp_path, drivers)

        result = await manager.create_session(raw)

        assert result.outcome is CreateOutcome.INVALID_NAME
        assert result.reason == reason
        assert manager.list_sessions() == []
        assert drivers.created == {}

    @pytest.mark.asyncio
    async def test_name_is_trimmed(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers)

        result = await manager.create_session("  bob  ")

        assert result.session == "bob"
        assert manager.get_session_status(" bob ") is not None

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_creates_same_name(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers)

        results = await asyncio.gather(*(manager.create_session("alice") for _ in range(10)))

        outcomes = [r.outcome for r in results]
        assert outcomes.count(CreateOutcome.ACCEPTED) == 1
        assert outcomes.count(CreateOutcome.ALREADY_EXISTS) == 9
        assert len(drivers.created["alice"]) == 1

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_driver_factory_failure(self, tmp_path) -> None:
        def broken_factory(name: str):
            raise RuntimeError("no browser")

        manager = _manager(tmp_path, broken_factory)

        result = await manager.create_session("alice")

        assert result.outcome is CreateOutcome.DRIVER_UNAVAILABLE
        assert result.reason == "no browser"
        assert manager.get_session_status("alice") is None


class TestDestroySession:
    """Destruição idempotente e reaproveitamento do nome."""

    @pytest.mark.asyncio
    async def test_destroy_twice(self, tmp_path, drivers, recorder: RecordingSubscriber) -> None:
        manager = _manager(tmp_path, drivers)
        manager.subscribe("alice", recorder)
        await manager.create_session("alice")
        handle = manager.registry.get("alice")

        first = await manager.destroy_session("alice")
        second = await manager.destroy_session("alice")
        await handle.machine.wait_closed()

        assert first is DestroyOutcome.OK
        assert second is DestroyOutcome.NOT_FOUND
        assert manager.get_session_status("alice") is None
        assert drivers.last("alice").destroyed is True
        assert recorder.types()[-1] == "sessionEnded"
        assert recorder.events[-1].data["reason"] == "destroy-requested"

    @pytest.mark.asyncio
    async def test_destroy_unknown(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers)

        assert await manager.destroy_session("ghost") is DestroyOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_name_reserved_until_teardown_completes(self, tmp_path, drivers) -> None:
        """Recriar antes do fim do teardown é recusado; depois do fim é aceito."""
        manager = _manager(tmp_path, drivers)
        await manager.create_session("alice")
        old = manager.registry.get("alice")

        await manager.destroy_session("alice")
        early = await manager.create_session("alice")

        assert early.outcome is CreateOutcome.ALREADY_EXISTS
        assert manager.get_session_status("alice") is None
        assert manager.list_sessions() == []
        assert len(drivers.created["alice"]) == 1

        await old.machine.wait_closed()
        late = await manager.create_session("alice")

        assert drivers.created["alice"][0].destroyed is True
        assert late.accepted
        assert manager.registry.get("alice") is not old
        assert len(drivers.created["alice"]) == 2

        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_session_removed_after_attempt_limit(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers, threshold=2)
        await manager.create_session("alice")
        handle = manager.registry.get("alice")

        for payload in ("a", "b", "c"):
            drivers.last("alice").emit_qr(payload)
        await handle.machine.wait_closed()

        assert manager.get_session_status("alice") is None
        assert handle.machine.end_reason == "attempt-limit-exceeded"

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers)
        await manager.create_session("alice")
        await manager.create_session("bob")
        bob = manager.registry.get("bob")

        drivers.last("alice").emit_ready()
        drivers.last("bob").emit_auth_failure("revoked")
        await bob.machine.wait_closed()
        await manager.registry.get("alice").machine.idle()

        statuses = {s.name: s for s in manager.list_sessions()}
        assert set(statuses) == {"alice"}
        assert statuses["alice"].connected is True

        await manager.shutdown()


class TestSubscriptionsAndShutdown:
    @pytest.mark.asyncio
    async def test_subscribe_before_create(self, tmp_path, drivers, recorder) -> None:
        manager = _manager(tmp_path, drivers)

        name = manager.subscribe(" alice ", recorder)
        await manager.create_session("alice")
        drivers.last("alice").emit_qr("payload")
        await manager.registry.get("alice").machine.idle()

        assert name == "alice"
        assert recorder.types() == ["qr"]

        manager.unsubscribe("alice", recorder)
        await manager.shutdown()
        assert recorder.types() == ["qr"]

    def test_subscribe_invalid_name(self, tmp_path, drivers, recorder) -> None:
        manager = _manager(tmp_path, drivers)

        with pytest.raises(InvalidSessionNameError):
            manager.subscribe("../etc", recorder)

    @pytest.mark.asyncio
    async def test_shutdown_ends_every_session(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers)
        await manager.create_session("alice")
        await manager.create_session("bob")
        machines = [h.machine for h in manager.registry.handles()]

        await manager.shutdown()

        assert len(manager.registry) == 0
        assert all(m.state is SessionState.DESTROYED for m in machines)
        assert {m.end_reason for m in machines} == {"shutdown"}

    @pytest.mark.asyncio
    async def test_load_credentials_for_unknown_session(self, tmp_path, drivers) -> None:
        manager = _manager(tmp_path, drivers)

        snapshot = await manager.load_credentials("alice")

        assert len(snapshot) == 0
        assert snapshot.session_name == "alice"


class TestAliceScenario:
    @pytest.mark.asyncio
    async def test_three_qrs_then_ready(self, tmp_path, drivers, recorder) -> None:
        """Três QR dentro do limite e depois Ready: conectada, sem QR pendente."""
        manager = _manager(tmp_path, drivers, threshold=3)
        manager.subscribe("alice", recorder)
        await manager.create_session("alice")
        driver = drivers.last("alice")

        for n in range(3):
            driver.emit_qr(f"qr-{n}")
        driver.emit_ready({"pushname": "Alice"})
        await manager.registry.get("alice").machine.idle()

        status = manager.get_session_status("alice")
        assert status.connected is True
        assert status.qr_present is False
        assert recorder.types()[:4] == ["qr", "qr", "qr", "connected"]
        assert [s.name for s in manager.list_sessions()] == ["alice"]

        await manager.shutdown()
