"""Adversarial tests: tampered blobs and corrupted snapshot indexes.

These tests verify that:
1. A blob edited on disk fails verification and is never restored
2. A corrupt or malformed snapshot index is a hard error, not an empty store
3. Unreadable blobs surface as StoreError on retrieve
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ravenvault.core.content_store import ContentStore
from ravenvault.core.errors import StoreError
from ravenvault.core.restore_engine import RestoreEngine
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.models.snapshots import RegenerationPolicy, RegenerationStrategy


class TestBlobTampering:
    """Direct file edits to simulate an attacker with disk access."""

    def _tamper(self, store: ContentStore, blob_digest: str, payload) -> None:
        path = store.blobs_path / f"{blob_digest}.json"
        record = json.loads(path.read_text(encoding="utf-8"))
        record["payload"] = payload
        path.write_text(json.dumps(record), encoding="utf-8")

    def test_tampered_blob_fails_verify(self, content_store: ContentStore):
        d = content_store.store({"amount": 10})
        self._tamper(content_store, d, {"amount": 10_000})
        assert content_store.verify(d) is False

    def test_tampered_blob_goes_to_recompute(
        self, content_store: ContentStore, snapshot_manager: SnapshotManager,
        restore_engine: RestoreEngine, make_node,
    ):
        good = make_node("good", digest=content_store.store({"ok": True}))
        bad = make_node("bad", digest=content_store.store({"ok": False}))
        snap = snapshot_manager.create_snapshot([good, bad], [], "tamper")
        self._tamper(content_store, bad.digest, {"ok": "forged"})

        report = restore_engine.restore_snapshot(
            snap.id, RegenerationPolicy(strategy=RegenerationStrategy.FULL)
        )
        assert report.restored_nodes == ["good"]
        assert report.recompute_nodes == ["bad"]

    def test_garbage_blob(self, content_store: ContentStore):
        d = content_store.store({"a": 1})
        (content_store.blobs_path / f"{d}.json").write_text("\x00\x01 not json", encoding="utf-8")
        assert content_store.verify(d) is False
        with pytest.raises(StoreError):
            content_store.retrieve(d)

    def test_blob_without_payload(self, content_store: ContentStore):
        d = content_store.store({"a": 1})
        (content_store.blobs_path / f"{d}.json").write_text('{"metadata": {}}', encoding="utf-8")
        with pytest.raises(StoreError, match="no payload"):
            content_store.retrieve(d)


class TestIndexCorruption:
    def test_truncated_index(self, store_root: Path):
        SnapshotManager(store_root).create_snapshot([], [], "one")
        index = store_root / "metadata" / "snapshots.json"
        index.write_text(index.read_text(encoding="utf-8")[:20], encoding="utf-8")
        with pytest.raises(StoreError, match="corrupt"):
            SnapshotManager(store_root)

    def test_index_not_an_array(self, store_root: Path):
        index = store_root / "metadata" / "snapshots.json"
        index.parent.mkdir(parents=True)
        index.write_text('{"snapshots": []}', encoding="utf-8")
        with pytest.raises(StoreError, match="JSON array"):
            SnapshotManager(store_root)

    def test_malformed_entry(self, store_root: Path):
        index = store_root / "metadata" / "snapshots.json"
        index.parent.mkdir(parents=True)
        index.write_text('[{"id": "snap-x"}]', encoding="utf-8")
        with pytest.raises(StoreError, match="position 0"):
            SnapshotManager(store_root)

    def test_empty_array_is_empty_store(self, store_root: Path):
        index = store_root / "metadata" / "snapshots.json"
        index.parent.mkdir(parents=True)
        index.write_text("[]", encoding="utf-8")
        assert SnapshotManager(store_root).list_snapshots() == []
