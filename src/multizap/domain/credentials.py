"""Modelos da persistência de credenciais (resultado de save e snapshot de load).

Nenhum erro de I/O é descartado em silêncio: todo caminho que falhou aparece
como PersistenceFailure (save) ou entrada ERROR (load).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any


class EntryKind(StrEnum):
    """Representação de um arquivo no snapshot."""

    DOCUMENT = "document"  # JSON decodificado
    TEXT = "text"  # conteúdo pequeno inline (UTF-8 ou base64)
    PLACEHOLDER = "placeholder"  # só o tamanho (arquivo grande)
    ERROR = "error"  # falha de leitura/parse


@dataclass(frozen=True, slots=True)
class CredentialEntry:
    """Entrada de um arquivo de credencial."""

    kind: EntryKind
    value: Any = None
    size: int | None = None
    error: str | None = None
    encoding: str | None = None

    @classmethod
    def document(cls, value: Any, size: int) -> CredentialEntry:
        return cls(kind=EntryKind.DOCUMENT, value=value, size=size)

    @classmethod
    def text(cls, content: str, size: int, encoding: str | None = None) -> CredentialEntry:
        return cls(kind=EntryKind.TEXT, value=content, size=size, encoding=encoding)

    @classmethod
    def placeholder(cls, size: int) -> CredentialEntry:
        return cls(kind=EntryKind.PLACEHOLDER, size=size)

    @classmethod
    def failure(cls, error: str) -> CredentialEntry:
        return cls(kind=EntryKind.ERROR, error=error)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value}
        if self.kind in (EntryKind.DOCUMENT, EntryKind.TEXT):
            data["value"] = self.value
        if self.size is not None:
            data["size"] = self.size
        if self.encoding is not None:
            data["encoding"] = self.encoding
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class CredentialSnapshot:
    """Visão imutável da árvore persistida de uma sessão.

    Cada chamada a load produz um snapshot novo; `entries` é somente leitura.
    """

    session_name: str
    entries: Mapping[str, CredentialEntry] = field(default_factory=dict)
    loaded_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __getitem__(self, path: str) -> CredentialEntry:
        return self.entries[path]

    @property
    def errors(self) -> dict[str, str]:
        """Caminhos cuja leitura falhou → motivo."""
        return {
            path: entry.error or ""
            for path, entry in self.entries.items()
            if entry.kind is EntryKind.ERROR
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session_name,
            "loaded_at": self.loaded_at.isoformat(),
            "entries": {path: entry.to_dict() for path, entry in sorted(self.entries.items())},
        }


class SaveStatus(StrEnum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True, slots=True)
class PersistenceFailure:
    """Falha ao copiar um caminho específico."""

    path: str
    reason: str


@dataclass(frozen=True, slots=True)
class SaveResult:
    """Resultado de save: arquivos copiados e falhas por caminho."""

    session_name: str
    copied: tuple[str, ...] = ()
    errors: tuple[PersistenceFailure, ...] = ()

    @property
    def status(self) -> SaveStatus:
        return SaveStatus.PARTIAL_FAILURE if self.errors else SaveStatus.SUCCESS

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "files": len(self.copied),
            "errors": [{"path": e.path, "reason": e.reason} for e in self.errors],
        }
