"""Shared test fixtures for RavenVault."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from ravenvault.config import VaultConfig
from ravenvault.core.backup_manager import BackupManager
from ravenvault.core.content_store import ContentStore
from ravenvault.core.hasher import content_digest
from ravenvault.core.metadata_graph import MetadataGraph
from ravenvault.core.restore_engine import RestoreEngine
from ravenvault.core.retention import RetentionPolicyEvaluator
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.core.trace import EventRecorder, TraceEmitter
from ravenvault.models.dag import DAGNode, NodeStatus


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's RAVENVAULT_* variables and .env out of every test."""
    for key in list(os.environ):
        if key.startswith("RAVENVAULT_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Provide a temporary store root."""
    return tmp_path / "backups"


@pytest.fixture
def emitter() -> TraceEmitter:
    return TraceEmitter()


@pytest.fixture
def recorder(emitter: TraceEmitter) -> EventRecorder:
    """An EventRecorder subscribed to the shared emitter."""
    rec = EventRecorder()
    emitter.subscribe(rec)
    return rec


@pytest.fixture
def content_store(store_root: Path, emitter: TraceEmitter) -> ContentStore:
    """Provide a fresh ContentStore in a temp directory."""
    return ContentStore(store_root, emitter=emitter)


@pytest.fixture
def snapshot_manager(store_root: Path, emitter: TraceEmitter) -> SnapshotManager:
    """Provide a fresh SnapshotManager in a temp directory."""
    return SnapshotManager(store_root, emitter=emitter)


@pytest.fixture
def restore_engine(
    content_store: ContentStore,
    snapshot_manager: SnapshotManager,
    emitter: TraceEmitter,
) -> RestoreEngine:
    return RestoreEngine(content_store, snapshot_manager, emitter=emitter)


@pytest.fixture
def retention(
    snapshot_manager: SnapshotManager, content_store: ContentStore
) -> RetentionPolicyEvaluator:
    return RetentionPolicyEvaluator(snapshot_manager, content_store)


@pytest.fixture
def graph() -> MetadataGraph:
    return MetadataGraph()


@pytest.fixture
def manager(store_root: Path) -> BackupManager:
    """Provide a BackupManager wired to a temp store root."""
    return BackupManager(store_root, settings=VaultConfig(_env_file=None))


# ---------------------------------------------------------------------------
# Node factories: shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_node() -> Callable[..., DAGNode]:
    """Factory fixture: build a completed DAGNode with a valid digest."""

    def _factory(
        node_id: str,
        deps: list[str] | None = None,
        **overrides: Any,
    ) -> DAGNode:
        defaults: dict[str, Any] = {
            "id": node_id,
            "digest": content_digest({"node": node_id}),
            "deps": deps or [],
            "status": NodeStatus.COMPLETED,
            "agent_id": "test-agent",
            "trace_id": f"trace-{node_id}",
        }
        defaults.update(overrides)
        return DAGNode(**defaults)

    return _factory
