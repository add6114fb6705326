"""Tests for the retention policy evaluator."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ravenvault.core.content_store import ContentStore
from ravenvault.core.retention import RetentionPolicyEvaluator
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.models.snapshots import RegenerationPolicy

FAR_FUTURE = datetime.now(timezone.utc) + timedelta(days=365)


def _policy(**overrides) -> RegenerationPolicy:
    return RegenerationPolicy(**overrides)


class TestPlan:
    def test_keeps_newest(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        ids = [
            snapshot_manager.create_snapshot([], [], f"s{i}", immutable=False).id
            for i in range(5)
        ]
        deleted = retention.garbage_collect(_policy(max_snapshots=2))
        assert deleted == [ids[2], ids[1], ids[0]]
        assert [s.id for s in snapshot_manager.list_snapshots()] == ids[3:]

    def test_immutable_always_survive(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        keep = snapshot_manager.create_snapshot([], [], "golden", immutable=True)
        for i in range(3):
            snapshot_manager.create_snapshot([], [], f"s{i}", immutable=False)
        retention.garbage_collect(_policy(max_snapshots=0))
        assert [s.id for s in snapshot_manager.list_snapshots()] == [keep.id]

    def test_immutable_count_toward_window(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        old = snapshot_manager.create_snapshot([], [], "old", immutable=False)
        snapshot_manager.create_snapshot([], [], "pinned", immutable=True)
        assert retention.plan(_policy(max_snapshots=1)) == [old.id]

    def test_aged_window_survives(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        ids = [
            snapshot_manager.create_snapshot([], [], f"s{i}", immutable=False).id
            for i in range(5)
        ]
        later = datetime.now(timezone.utc) + timedelta(days=40)
        deleted = retention.garbage_collect(RegenerationPolicy(max_snapshots=3), now=later)
        assert deleted == [ids[1], ids[0]]
        assert [s.id for s in snapshot_manager.list_snapshots()] == ids[2:]

    def test_age_never_prunes_inside_window(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        snapshot_manager.create_snapshot([], [], "aging", immutable=False)
        for ttl_days in (0, 1, 30):
            policy = _policy(max_snapshots=1, ttl_days=ttl_days)
            assert retention.plan(policy, now=FAR_FUTURE) == []

    def test_overflow_pruned_regardless_of_age(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        old = snapshot_manager.create_snapshot([], [], "old", immutable=False)
        snapshot_manager.create_snapshot([], [], "new", immutable=False)
        policy = _policy(max_snapshots=1, ttl_days=30)
        assert retention.plan(policy) == [old.id]
        assert retention.plan(policy, now=FAR_FUTURE) == [old.id]

    def test_plan_does_not_delete(self, snapshot_manager: SnapshotManager, retention: RetentionPolicyEvaluator):
        snapshot_manager.create_snapshot([], [], "s", immutable=False)
        assert len(retention.plan(_policy(max_snapshots=0))) == 1
        assert len(snapshot_manager.list_snapshots()) == 1

    def test_max_snapshots_must_be_non_negative(self):
        with pytest.raises(ValueError):
            RegenerationPolicy(max_snapshots=-1)


class TestBlobSweep:
    def test_preserve_history_keeps_blobs(
        self, content_store: ContentStore, snapshot_manager: SnapshotManager,
        retention: RetentionPolicyEvaluator, make_node,
    ):
        node = make_node("a", digest=content_store.store({"a": 1}))
        snapshot_manager.create_snapshot([node], [], "s", immutable=False)
        retention.garbage_collect(_policy(max_snapshots=0))
        assert content_store.exists(node.digest)

    def test_sweep_after_gc(
        self, content_store: ContentStore, snapshot_manager: SnapshotManager,
        retention: RetentionPolicyEvaluator, make_node,
    ):
        kept = make_node("kept", digest=content_store.store({"kept": 1}))
        gone = make_node("gone", digest=content_store.store({"gone": 1}))
        protected = content_store.store({"live": 1})
        snapshot_manager.create_snapshot([gone], [], "old", immutable=False)
        snapshot_manager.create_snapshot([kept], [], "pinned", immutable=True)

        retention.garbage_collect(
            _policy(max_snapshots=0, preserve_history=False),
            protected_digests=[protected],
        )
        assert content_store.exists(kept.digest)
        assert content_store.exists(protected)
        assert not content_store.exists(gone.digest)

    def test_sweep_never_removes_referenced(
        self, content_store: ContentStore, snapshot_manager: SnapshotManager,
        retention: RetentionPolicyEvaluator, make_node,
    ):
        node = make_node("a", digest=content_store.store({"a": 1}))
        orphan = content_store.store({"orphan": True})
        snapshot_manager.create_snapshot([node], [], "s")
        assert retention.sweep_blobs() == [orphan]
        assert content_store.list() == [node.digest]

    def test_sweep_requires_store(self, snapshot_manager: SnapshotManager):
        with pytest.raises(RuntimeError):
            RetentionPolicyEvaluator(snapshot_manager).sweep_blobs()
