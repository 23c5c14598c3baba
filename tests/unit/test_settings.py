"""Testes das validações de Settings e do bootstrap da app."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from multizap.api.app import create_app
from multizap.config.settings import Settings, get_settings


class TestPairingConfig:
    def test_pairing_limit_is_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Sem PAIRING_MAX_ATTEMPTS a configuração não carrega."""
        monkeypatch.delenv("PAIRING_MAX_ATTEMPTS", raising=False)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_pairing_limit_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAIRING_MAX_ATTEMPTS", "5")
        get_settings.cache_clear()

        try:
            assert get_settings().pairing_max_attempts == 5
        finally:
            get_settings.cache_clear()

    def test_pairing_limit_must_be_positive(self) -> None:
        settings = Settings(pairing_max_attempts=0)

        assert settings.validate_pairing_config() == ["PAIRING_MAX_ATTEMPTS deve ser >= 1"]


class TestDriverConfig:
    def test_scripted_forbidden_in_production(self, settings: Settings) -> None:
        prod = settings.model_copy(update={"environment": "production"})

        errors = prod.validate_driver_config()

        assert any("scripted" in e for e in errors)

    def test_subprocess_requires_command(self, settings: Settings) -> None:
        sub = settings.model_copy(update={"driver_backend": "subprocess"})

        assert any("DRIVER_COMMAND" in e for e in sub.validate_driver_config())

    def test_subprocess_with_command_is_valid(self, settings: Settings) -> None:
        sub = settings.model_copy(
            update={
                "driver_backend": "subprocess",
                "driver_command": ["node", "bridge.js"],
                "environment": "production",
            }
        )

        assert sub.validate_driver_config() == []

    def test_unknown_backend(self, settings: Settings) -> None:
        bad = settings.model_copy(update={"driver_backend": "selenium"})

        assert any("inválido" in e for e in bad.validate_driver_config())


class TestCredentialStoreConfig:
    def test_store_inside_auth_root_rejected(self, settings: Settings) -> None:
        nested = settings.model_copy(
            update={"credential_store_root": settings.driver_auth_root / "durable"}
        )

        assert nested.validate_credential_store_config()

    def test_default_layout_is_valid(self, settings: Settings) -> None:
        assert settings.validate_all() == []

    def test_session_auth_dir_follows_local_auth_layout(self, settings: Settings) -> None:
        assert settings.session_auth_dir("alice") == settings.driver_auth_root / "session-alice"


class TestAppBootstrap:
    def test_create_app_with_valid_settings(self, settings: Settings) -> None:
        app = create_app(settings)

        assert app.state.settings is settings
        assert app.state.session_manager is not None

    def test_create_app_fails_on_invalid_settings(self, settings: Settings) -> None:
        invalid = settings.model_copy(update={"pairing_max_attempts": 0, "log_format": "xml"})

        with pytest.raises(ValueError, match="Configuração inválida") as exc_info:
            create_app(invalid)

        assert "PAIRING_MAX_ATTEMPTS" in str(exc_info.value)
        assert "LOG_FORMAT" in str(exc_info.value)
