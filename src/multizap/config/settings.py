"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou arquivo .env em dev).
O limite de tentativas de pareamento não tem valor padrão: cada implantação
precisa declarar PAIRING_MAX_ATTEMPTS explicitamente.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from multizap.observability.logging import get_logger

# Limite (em bytes) abaixo do qual arquivos de credencial são inlined como texto
CREDENTIAL_INLINE_MAX_BYTES: int = 2000

# Argumentos do Chromium headless usados pelo driver (padrão do LocalAuth)
DEFAULT_BROWSER_ARGS: tuple[str, ...] = ("--no-sandbox", "--disable-setuid-sandbox")


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Aplicação
    service_name: str = "multizap"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"

    # Pareamento (obrigatório, sem default)
    pairing_max_attempts: int = Field(...)

    # Persistência de credenciais
    credential_store_root: Path = Path(".credential_store")
    credential_inline_max_bytes: int = CREDENTIAL_INLINE_MAX_BYTES

    # Driver de automação
    driver_backend: str = "scripted"  # scripted | subprocess
    driver_auth_root: Path = Path(".wwebjs_auth")  # árvore volátil do driver
    driver_command: list[str] = Field(default_factory=list)  # argv do processo bridge
    driver_headless: bool = True
    driver_browser_args: list[str] = Field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))
    driver_shutdown_grace_seconds: float = 5.0

    # Fan-out / transporte
    subscriber_queue_size: int = 100  # eventos pendentes por WebSocket
    qr_render_data_url: bool = True

    # Observabilidade
    log_format: str = "json"  # json | text
    correlation_id_header: str = "X-Correlation-ID"

    def validate_pairing_config(self) -> list[str]:
        """Valida o limite de tentativas de QR.

        Retorna lista de erros (vazia = OK).
        """
        errors: list[str] = []
        if self.pairing_max_attempts < 1:
            errors.append("PAIRING_MAX_ATTEMPTS deve ser >= 1")
        return errors

    def validate_driver_config(self) -> list[str]:
        """Valida backend do driver por ambiente.

        Em staging/prod o driver scripted é proibido (não conecta de verdade).
        """
        errors: list[str] = []
        backend = self.driver_backend.lower()

        valid_backends = {"scripted", "subprocess"}
        if backend not in valid_backends:
            errors.append(
                f"DRIVER_BACKEND '{backend}' inválido. Valores válidos: {sorted(valid_backends)}"
            )

        if backend == "subprocess" and not self.driver_command:
            errors.append("DRIVER_BACKEND=subprocess requer DRIVER_COMMAND configurado")

        if backend == "scripted" and (self.is_staging or self.is_production):
            errors.append("DRIVER_BACKEND=scripted é proibido em staging/production")

        if self.driver_shutdown_grace_seconds <= 0:
            errors.append("DRIVER_SHUTDOWN_GRACE_SECONDS deve ser > 0")

        return errors

    def validate_credential_store_config(self) -> list[str]:
        """Valida diretórios e limites da persistência de credenciais."""
        errors: list[str] = []
        if self.credential_inline_max_bytes < 0:
            errors.append("CREDENTIAL_INLINE_MAX_BYTES deve ser >= 0")

        store = self.credential_store_root.resolve()
        auth = self.driver_auth_root.resolve()
        if store == auth or auth in store.parents:
            errors.append(
                "CREDENTIAL_STORE_ROOT não pode ficar dentro de DRIVER_AUTH_ROOT "
                "(a cópia durável seria apagada junto com a árvore volátil)"
            )

        if self.subscriber_queue_size < 1:
            errors.append("SUBSCRIBER_QUEUE_SIZE deve ser >= 1")
        return errors

    def validate_all(self) -> list[str]:
        """Agrega todas as validações (usado no boot da app)."""
        errors: list[str] = []
        errors.extend(self.validate_pairing_config())
        errors.extend(self.validate_driver_config())
        errors.extend(self.validate_credential_store_config())
        if self.log_format.lower() not in {"json", "text"}:
            errors.append("LOG_FORMAT inválido: use json | text")
        return errors

    def session_auth_dir(self, session_name: str) -> Path:
        """Diretório volátil onde o driver grava as credenciais da sessão.

        Segue o layout do LocalAuth: <auth_root>/session-<clientId>.
        """
        return self.driver_auth_root / f"session-{session_name}"

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    def model_post_init(self, __context: Any) -> None:
        """Registra o ambiente carregado (sem valores sensíveis)."""
        logger: logging.Logger = get_logger(__name__)
        logger.debug(
            "settings_loaded",
            extra={
                "environment": self.environment,
                "driver_backend": self.driver_backend,
                "pairing_max_attempts": self.pairing_max_attempts,
            },
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings.

    A cache garante que mesmo múltiplas injeções não criam novos objetos.
    """
    return Settings()
