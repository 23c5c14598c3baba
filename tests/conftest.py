from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from multizap.api.app import create_app
from multizap.config.settings import Settings, get_settings
from tests.helpers.recording import DriverPool, RecordingSubscriber


@pytest.fixture()
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture()
def auth_root(tmp_path: Path) -> Path:
    root = tmp_path / "auth"
    root.mkdir()
    return root


@pytest.fixture()
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture()
def drivers(auth_root: Path) -> DriverPool:
    return DriverPool(auth_root)


@pytest.fixture()
def settings(auth_root: Path, store_root: Path) -> Settings:
    return Settings(
        pairing_max_attempts=3,
        credential_store_root=store_root,
        driver_auth_root=auth_root,
        environment="development",
        driver_backend="scripted",
    )


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch, auth_root: Path, store_root: Path):
    monkeypatch.setenv("PAIRING_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("CREDENTIAL_STORE_ROOT", str(store_root))
    monkeypatch.setenv("DRIVER_AUTH_ROOT", str(auth_root))
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DRIVER_BACKEND", "scripted")
    get_settings.cache_clear()
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()
