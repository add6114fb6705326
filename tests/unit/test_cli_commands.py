"""Unit tests for the CLI: command registration and behavior via CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from ravenvault.cli.app import app
from ravenvault.core.content_store import ContentStore
from ravenvault.core.hasher import content_digest
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.models.dag import DAGNode, NodeStatus

runner = CliRunner()


def _write_dag(path: Path, nodes: list[dict], edges: list[dict] | None = None) -> Path:
    path.write_text(json.dumps({"nodes": nodes, "edges": edges or []}), encoding="utf-8")
    return path


def _corrupt_index(store_root: Path) -> None:
    metadata = store_root / "metadata"
    metadata.mkdir(parents=True, exist_ok=True)
    (metadata / "snapshots.json").write_text("{not json", encoding="utf-8")


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("store", "retrieve", "blobs", "verify", "snapshot", "restore", "gc"):
            assert command in result.output

    def test_every_command_has_help(self):
        for command in (
            "store", "retrieve", "blobs", "verify",
            "snapshot", "snapshots", "delete", "restore", "gc",
        ):
            result = runner.invoke(app, [command, "--help"])
            assert result.exit_code == 0, command


# ---------------------------------------------------------------------------
# Test: blob commands
# ---------------------------------------------------------------------------


class TestBlobCommands:
    def test_store_prints_digest(self, store_root: Path):
        result = runner.invoke(app, ["store", '{"a": 1}', "--root", str(store_root)])
        assert result.exit_code == 0
        assert content_digest({"a": 1}) in result.output

    def test_store_from_file(self, tmp_path: Path, store_root: Path):
        payload = tmp_path / "payload.json"
        payload.write_text('{"from": "file"}', encoding="utf-8")
        result = runner.invoke(app, ["store", f"@{payload}", "--root", str(store_root)])
        assert result.exit_code == 0
        assert content_digest({"from": "file"}) in result.output

    def test_store_rejects_bad_json(self, store_root: Path):
        result = runner.invoke(app, ["store", "{not json", "--root", str(store_root)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_retrieve(self, store_root: Path):
        d = ContentStore(store_root).store({"answer": 42})
        result = runner.invoke(app, ["retrieve", d, "--root", str(store_root)])
        assert result.exit_code == 0
        assert "42" in result.output

    def test_retrieve_missing(self, store_root: Path):
        result = runner.invoke(
            app, ["retrieve", content_digest("nope"), "--root", str(store_root)]
        )
        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_retrieve_corrupt_blob(self, store_root: Path):
        store = ContentStore(store_root)
        d = store.store({"a": 1})
        (store.blobs_path / f"{d}.json").write_text("{truncated", encoding="utf-8")
        result = runner.invoke(app, ["retrieve", d, "--root", str(store_root)])
        assert result.exit_code == 1
        assert "Corrupt blob" in result.output

    def test_blobs_listing(self, store_root: Path):
        result = runner.invoke(app, ["blobs", "--root", str(store_root)])
        assert "No blobs stored" in result.output
        d = ContentStore(store_root).store([1])
        result = runner.invoke(app, ["blobs", "--root", str(store_root)])
        assert d in result.output

    def test_verify(self, store_root: Path):
        store = ContentStore(store_root)
        d = store.store({"a": 1})
        result = runner.invoke(app, ["verify", "--root", str(store_root)])
        assert result.exit_code == 0
        assert "All blobs verified" in result.output

        (store.blobs_path / f"{d}.json").write_text(
            '{"payload": {"a": 2}, "metadata": {}}', encoding="utf-8"
        )
        result = runner.invoke(app, ["verify", "--root", str(store_root)])
        assert result.exit_code == 1
        assert "CORRUPT" in result.output


# ---------------------------------------------------------------------------
# Test: snapshot commands
# ---------------------------------------------------------------------------


class TestSnapshotCommands:
    def test_snapshot_and_list(self, tmp_path: Path, store_root: Path):
        dag = _write_dag(
            tmp_path / "dag.json",
            [{"id": "n1", "digest": content_digest("n1"), "status": "completed"}],
        )
        result = runner.invoke(
            app, ["snapshot", str(dag), "-d", "cli backup", "-t", "nightly", "--root", str(store_root)]
        )
        assert result.exit_code == 0
        snapshots = SnapshotManager(store_root).list_snapshots()
        assert len(snapshots) == 1
        assert snapshots[0].id in result.output
        assert snapshots[0].tags == ["nightly"]
        assert snapshots[0].immutable is True

        listing = runner.invoke(app, ["snapshots", "--root", str(store_root)])
        assert listing.exit_code == 0
        assert "Snapshots" in listing.output

    def test_snapshot_warns_on_inconsistent_dag(self, tmp_path: Path, store_root: Path):
        dag = _write_dag(
            tmp_path / "dag.json",
            [{"id": "n1"}],
            [{"from": "n1", "to": "ghost"}],
        )
        result = runner.invoke(app, ["snapshot", str(dag), "--root", str(store_root)])
        assert result.exit_code == 0
        assert "consensus" in result.output

    def test_snapshot_bad_file(self, tmp_path: Path, store_root: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("[", encoding="utf-8")
        result = runner.invoke(app, ["snapshot", str(bad), "--root", str(store_root)])
        assert result.exit_code == 1

    def test_snapshot_duplicate_node_ids(self, tmp_path: Path, store_root: Path):
        dag = _write_dag(tmp_path / "dag.json", [{"id": "n1"}, {"id": "n1"}])
        result = runner.invoke(app, ["snapshot", str(dag), "--root", str(store_root)])
        assert result.exit_code == 1
        assert "Invalid DAG" in result.output
        assert SnapshotManager(store_root).list_snapshots() == []

    def test_corrupt_index(self, tmp_path: Path, store_root: Path):
        _corrupt_index(store_root)
        dag = _write_dag(tmp_path / "dag.json", [{"id": "n1"}])
        for args in (["snapshots"], ["snapshot", str(dag)], ["delete", "snap-nope"]):
            result = runner.invoke(app, [*args, "--root", str(store_root)])
            assert result.exit_code == 1
            assert "Store error" in result.output

    def test_empty_listing(self, store_root: Path):
        result = runner.invoke(app, ["snapshots", "--root", str(store_root)])
        assert result.exit_code == 0
        assert "No snapshots" in result.output

    def test_delete(self, store_root: Path):
        manager = SnapshotManager(store_root)
        keep = manager.create_snapshot([], [], "keep")
        temp = manager.create_snapshot([], [], "temp", immutable=False)

        refused = runner.invoke(app, ["delete", keep.id, "--root", str(store_root)])
        assert refused.exit_code == 1
        assert "immutable" in refused.output

        result = runner.invoke(app, ["delete", temp.id, "--root", str(store_root)])
        assert result.exit_code == 0
        assert [s.id for s in SnapshotManager(store_root).list_snapshots()] == [keep.id]

        missing = runner.invoke(app, ["delete", "snap-nope", "--root", str(store_root)])
        assert missing.exit_code == 1


# ---------------------------------------------------------------------------
# Test: restore and gc
# ---------------------------------------------------------------------------


class TestRestoreCommand:
    def _snapshot(self, store_root: Path, *, drop_second: bool) -> str:
        store = ContentStore(store_root)
        d1 = store.store({"a": 1})
        d2 = store.store({"b": 2})
        manager = SnapshotManager(store_root)
        snap = manager.create_snapshot(
            [
                DAGNode(id="n1", digest=d1, status=NodeStatus.COMPLETED),
                DAGNode(id="n2", digest=d2, deps=["n1"], status=NodeStatus.COMPLETED),
            ],
            [],
            "restore me",
        )
        if drop_second:
            store.delete(d2)
        return snap.id

    def test_restore_clean(self, store_root: Path):
        snapshot_id = self._snapshot(store_root, drop_second=False)
        result = runner.invoke(app, ["restore", snapshot_id, "--root", str(store_root)])
        assert result.exit_code == 0
        assert "Restored: 2" in result.output

    def test_restore_needs_recompute(self, store_root: Path):
        snapshot_id = self._snapshot(store_root, drop_second=True)
        result = runner.invoke(
            app, ["restore", snapshot_id, "-s", "full", "--root", str(store_root)]
        )
        assert result.exit_code == 2
        assert "n2" in result.output

    def test_restore_unknown(self, store_root: Path):
        result = runner.invoke(app, ["restore", "snap-nope", "--root", str(store_root)])
        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_restore_selective_without_nodes(self, store_root: Path):
        snapshot_id = self._snapshot(store_root, drop_second=False)
        result = runner.invoke(
            app, ["restore", snapshot_id, "-s", "selective", "--root", str(store_root)]
        )
        assert result.exit_code == 1

    def test_restore_selective(self, store_root: Path):
        snapshot_id = self._snapshot(store_root, drop_second=True)
        result = runner.invoke(
            app,
            ["restore", snapshot_id, "-s", "selective", "-n", "n1", "--root", str(store_root)],
        )
        assert result.exit_code == 0
        assert "Skipped: 1" in result.output

    def test_restore_corrupt_index(self, store_root: Path):
        _corrupt_index(store_root)
        result = runner.invoke(app, ["restore", "snap-any", "--root", str(store_root)])
        assert result.exit_code == 1
        assert "Store error" in result.output


class TestGcCommand:
    def test_dry_run_then_gc(self, store_root: Path):
        manager = SnapshotManager(store_root)
        ids = [manager.create_snapshot([], [], f"s{i}", immutable=False).id for i in range(3)]

        dry = runner.invoke(app, ["gc", "-m", "1", "--dry-run", "--root", str(store_root)])
        assert dry.exit_code == 0
        assert "2 snapshot(s) would be deleted" in dry.output
        assert len(SnapshotManager(store_root).list_snapshots()) == 3

        result = runner.invoke(app, ["gc", "-m", "1", "--root", str(store_root)])
        assert result.exit_code == 0
        assert [s.id for s in SnapshotManager(store_root).list_snapshots()] == [ids[-1]]

    def test_gc_corrupt_index(self, store_root: Path):
        _corrupt_index(store_root)
        result = runner.invoke(app, ["gc", "--dry-run", "--root", str(store_root)])
        assert result.exit_code == 1
        assert "Store error" in result.output
