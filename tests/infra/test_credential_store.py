"""Testes do FileCredentialStore (save recursivo + load em snapshot)."""

from __future__ import annotations

import asyncio
import base64
import json
import os
import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from multizap.config.settings import CREDENTIAL_INLINE_MAX_BYTES
from multizap.domain.credentials import EntryKind, SaveStatus
from multizap.infra.credential_store import FileCredentialStore, create_credential_store


@pytest.fixture()
def source(tmp_path: Path) -> Path:
    """Árvore no formato do LocalAuth, com arquivos pequenos, grandes e JSON."""
    root = tmp_path / "auth" / "session-alice"
    (root / "Default" / "IndexedDB").mkdir(parents=True)
    (root / "session.json").write_text(json.dumps({"WABrowserId": "abc", "WAToken1": "t1"}))
    (root / "Default" / "Preferences").write_text("small text")
    (root / "Default" / "IndexedDB" / "000003.log").write_bytes(b"x" * 4096)
    return root


@pytest.fixture()
def store(tmp_path: Path) -> FileCredentialStore:
    return FileCredentialStore(tmp_path / "store")


class TestSave:
    @pytest.mark.asyncio
    async def test_copies_tree_recursively(self, store, source, tmp_path) -> None:
        result = await store.save("alice", source)

        assert result.status is SaveStatus.SUCCESS
        assert sorted(result.copied) == [
            "Default/IndexedDB/000003.log",
            "Default/Preferences",
            "session.json",
        ]
        dest = tmp_path / "store" / "alice"
        assert (dest / "Default" / "IndexedDB" / "000003.log").read_bytes() == b"x" * 4096
        assert not list(dest.rglob("*.mzpart"))

    @pytest.mark.asyncio
    async def test_missing_source_is_reported(self, store, tmp_path) -> None:
        result = await store.save("alice", tmp_path / "nope")

        assert result.status is SaveStatus.PARTIAL_FAILURE
        assert result.errors[0].path == "."

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_copying(self, store, source) -> None:
        real_copy = shutil.copyfile

        def flaky_copy(src, dst, *args, **kwargs):
            if Path(src).name == "Preferences":
                raise PermissionError("denied")
            return real_copy(src, dst, *args, **kwargs)

        with patch("multizap.infra.credential_store.shutil.copyfile", side_effect=flaky_copy):
            result = await store.save("alice", source)

        assert result.status is SaveStatus.PARTIAL_FAILURE
        assert [e.path for e in result.errors] == ["Default/Preferences"]
        assert "PermissionError" in result.errors[0].reason
        assert "session.json" in result.copied
        assert not list(store.session_dir("alice").rglob("*.mzpart"))

    @pytest.mark.asyncio
    async def test_link_escaping_root_is_not_followed(self, store, source, tmp_path) -> None:
        secret = tmp_path / "outside.txt"
        secret.write_text("do not copy")
        os.symlink(secret, source / "leak.txt")

        result = await store.save("alice", source)

        assert [(e.path, e.reason) for e in result.errors] == [
            ("leak.txt", "link escapes source root")
        ]
        assert not (store.session_dir("alice") / "leak.txt").exists()

    @pytest.mark.asyncio
    async def test_overwrite_replaces_previous_copy(self, store, source) -> None:
        await store.save("alice", source)
        (source / "Default" / "Preferences").write_text("updated")

        await store.save("alice", source)

        assert (store.session_dir("alice") / "Default" / "Preferences").read_text() == "updated"


class TestLoad:
    @pytest.mark.asyncio
    async def test_snapshot_representations(self, store, source) -> None:
        await store.save("alice", source)

        snapshot = await store.load("alice")

        assert snapshot["session.json"].kind is EntryKind.DOCUMENT
        assert snapshot["session.json"].value == {"WABrowserId": "abc", "WAToken1": "t1"}
        assert snapshot["Default/Preferences"].kind is EntryKind.TEXT
        assert snapshot["Default/Preferences"].value == "small text"
        placeholder = snapshot["Default/IndexedDB/000003.log"]
        assert placeholder.kind is EntryKind.PLACEHOLDER
        assert placeholder.size == 4096
        assert snapshot.errors == {}

    @pytest.mark.asyncio
    async def test_inline_threshold_boundary(self, store, tmp_path) -> None:
        src = tmp_path / "src"
        src.mkdir()
        (src / "below").write_text("a" * (CREDENTIAL_INLINE_MAX_BYTES - 1))
        (src / "at").write_text("a" * CREDENTIAL_INLINE_MAX_BYTES)
        await store.save("alice", src)

        snapshot = await store.load("alice")

        assert snapshot["below"].kind is EntryKind.TEXT
        assert snapshot["at"].kind is EntryKind.PLACEHOLDER
        assert snapshot["at"].size == CREDENTIAL_INLINE_MAX_BYTES

    @pytest.mark.asyncio
    async def test_broken_document_is_reported(self, store, tmp_path) -> None:
        src = tmp_path / "src"
        src.mkdir()
        (src / "creds.json").write_text("{not json")
        (src / "ok.json").write_text("[1, 2]")
        await store.save("alice", src)

        snapshot = await store.load("alice")

        assert snapshot["creds.json"].kind is EntryKind.ERROR
        assert "invalid document" in snapshot.errors["creds.json"]
        assert snapshot["ok.json"].value == [1, 2]

    @pytest.mark.asyncio
    async def test_small_binary_is_inlined_as_base64(self, store, tmp_path) -> None:
        raw = b"\xff\xfe\x00\x01\x80LDB"
        src = tmp_path / "src"
        src.mkdir()
        (src / "000003.log").write_bytes(raw)
        await store.save("alice", src)

        snapshot = await store.load("alice")

        entry = snapshot["000003.log"]
        assert entry.kind is EntryKind.TEXT
        assert entry.encoding == "base64"
        assert entry.size == len(raw)
        assert base64.b64decode(entry.value) == raw
        assert entry.to_dict()["encoding"] == "base64"

    @pytest.mark.asyncio
    async def test_unknown_session_is_empty(self, store) -> None:
        snapshot = await store.load("ghost")

        assert len(snapshot) == 0

    @pytest.mark.asyncio
    async def test_each_load_is_a_new_snapshot(self, store, source) -> None:
        await store.save("alice", source)

        first, second = await asyncio.gather(store.load("alice"), store.load("alice"))

        assert first is not second
        assert first.to_dict()["entries"] == second.to_dict()["entries"]


class TestSessionsAreIndependent:
    @pytest.mark.asyncio
    async def test_parallel_saves_for_different_sessions(self, store, tmp_path) -> None:
        sources = []
        for name in ("alice", "bob", "carol"):
            src = tmp_path / "auth" / f"session-{name}"
            src.mkdir(parents=True)
            (src / "id.json").write_text(json.dumps({"name": name}))
            sources.append((name, src))

        results = await asyncio.gather(*(store.save(n, s) for n, s in sources))

        assert all(r.ok for r in results)
        for name, _ in sources:
            snapshot = await store.load(name)
            assert snapshot["id.json"].value == {"name": name}


def test_factory_uses_settings(settings) -> None:
    store = create_credential_store(settings)

    assert store.root == settings.credential_store_root
