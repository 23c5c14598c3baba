"""Persistência durável das credenciais do driver em disco.

Layout: <store_root>/<session_name>/<caminho relativo espelhando a árvore do driver>.

Características:
- Cópia recursiva tolerante a falhas parciais (cada arquivo isolado)
- Links simbólicos que escapam da raiz de origem nunca são seguidos
- Escrita atômica por arquivo (tmp + os.replace), sem escrita parcial visível
- save/load da mesma sessão serializados; sessões diferentes não disputam lock
- I/O bloqueante roda em thread (anyio), sem travar o event loop
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import shutil
import uuid
import weakref
from pathlib import Path
from typing import Any

import anyio

from multizap.domain.credentials import (
    CredentialEntry,
    CredentialSnapshot,
    PersistenceFailure,
    SaveResult,
)
from multizap.domain.protocols.credential_store import CredentialStoreProtocol
from multizap.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

_TMP_SUFFIX = ".mzpart"
_DOCUMENT_SUFFIXES = frozenset({".json"})


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


class FileCredentialStore(CredentialStoreProtocol):
    """Store de credenciais em sistema de arquivos local."""

    def __init__(self, root: Path, inline_max_bytes: int = 2000) -> None:
        self._root = Path(root)
        self._inline_max_bytes = inline_max_bytes
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def root(self) -> Path:
        return self._root

    def session_dir(self, session_name: str) -> Path:
        return self._root / session_name

    def _lock_for(self, session_name: str) -> asyncio.Lock:
        lock = self._locks.get(session_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_name] = lock
        return lock

    async def save(self, session_name: str, source_root: Path) -> SaveResult:
        """Copia a árvore volátil do driver para o store durável.

        Nunca lança por falha de arquivo; falhas voltam em `SaveResult.errors`.
        """
        lock = self._lock_for(session_name)
        async with lock:
            result = await anyio.to_thread.run_sync(
                self._save_sync, session_name, Path(source_root)
            )

        log = logger.info if result.ok else logger.warning
        log(
            "credentials_saved",
            extra={
                "session_name": session_name,
                "files": len(result.copied),
                "errors": len(result.errors),
                "status": result.status.value,
            },
        )
        return result

    async def load(self, session_name: str) -> CredentialSnapshot:
        """Lê a árvore persistida e produz um snapshot novo."""
        lock = self._lock_for(session_name)
        async with lock:
            entries = await anyio.to_thread.run_sync(self._load_sync, session_name)

        snapshot = CredentialSnapshot(session_name=session_name, entries=entries)
        logger.debug(
            "credentials_loaded",
            extra={
                "session_name": session_name,
                "entries": len(snapshot),
                "errors": len(snapshot.errors),
            },
        )
        return snapshot

    # ------------------------------------------------------------------ save

    def _save_sync(self, session_name: str, source_root: Path) -> SaveResult:
        copied: list[str] = []
        errors: list[PersistenceFailure] = []

        if not source_root.is_dir():
            errors.append(PersistenceFailure(".", f"source root not found: {source_root}"))
            return SaveResult(session_name, tuple(copied), tuple(errors))

        root = source_root.resolve()
        dest_root = self.session_dir(session_name)
        try:
            dest_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            errors.append(PersistenceFailure(".", _describe(exc)))
            return SaveResult(session_name, tuple(copied), tuple(errors))

        def on_walk_error(exc: OSError) -> None:
            errors.append(PersistenceFailure(self._relative(exc.filename, root), _describe(exc)))

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_walk_error):
            current = Path(dirpath)

            for dirname in sorted(dirnames):
                candidate = current / dirname
                if not candidate.is_symlink():
                    continue
                # os.walk não desce em links; alvos internos já são copiados pelo caminho real
                if not _is_within(candidate.resolve(), root):
                    errors.append(
                        PersistenceFailure(
                            candidate.relative_to(root).as_posix(),
                            "link escapes source root",
                        )
                    )

            for filename in sorted(filenames):
                src = current / filename
                rel = src.relative_to(root).as_posix()
                try:
                    if src.is_symlink() and not _is_within(src.resolve(), root):
                        errors.append(PersistenceFailure(rel, "link escapes source root"))
                        continue
                    self._copy_file(src, dest_root / rel)
                    copied.append(rel)
                except OSError as exc:
                    errors.append(PersistenceFailure(rel, _describe(exc)))

        return SaveResult(session_name, tuple(copied), tuple(errors))

    @staticmethod
    def _copy_file(src: Path, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(f".{dest.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}")
        try:
            shutil.copyfile(src, tmp)
            os.replace(tmp, dest)
        finally:
            tmp.unlink(missing_ok=True)

    @staticmethod
    def _relative(filename: Any, root: Path) -> str:
        if not filename:
            return "."
        try:
            return Path(filename).relative_to(root).as_posix()
        except ValueError:
            return str(filename)

    # ------------------------------------------------------------------ load

    def _load_sync(self, session_name: str) -> dict[str, CredentialEntry]:
        root = self.session_dir(session_name)
        entries: dict[str, CredentialEntry] = {}
        if not root.is_dir():
            return entries

        def on_walk_error(exc: OSError) -> None:
            entries[self._relative(exc.filename, root)] = CredentialEntry.failure(_describe(exc))

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_walk_error):
            dirnames.sort()
            current = Path(dirpath)
            for filename in sorted(filenames):
                if filename.endswith(_TMP_SUFFIX):
                    continue
                path = current / filename
                entries[path.relative_to(root).as_posix()] = self._read_entry(path)
        return entries

    def _read_entry(self, path: Path) -> CredentialEntry:
        try:
            size = path.stat().st_size
            is_document = path.suffix.lower() in _DOCUMENT_SUFFIXES
            if not is_document and size >= self._inline_max_bytes:
                return CredentialEntry.placeholder(size)
            raw = path.read_bytes()
        except OSError as exc:
            return CredentialEntry.failure(_describe(exc))

        if is_document:
            try:
                return CredentialEntry.document(json.loads(raw.decode("utf-8")), len(raw))
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                return CredentialEntry.failure(f"invalid document: {exc}")

        try:
            return CredentialEntry.text(raw.decode("utf-8"), len(raw))
        except UnicodeDecodeError:
            # binário pequeno (ex.: LevelDB do perfil) vai inline em base64
            return CredentialEntry.text(base64.b64encode(raw).decode("ascii"), len(raw), "base64")


def create_credential_store(settings: Any) -> FileCredentialStore:
    """Factory a partir de Settings."""
    return FileCredentialStore(
        root=Path(settings.credential_store_root),
        inline_max_bytes=settings.credential_inline_max_bytes,
    )
