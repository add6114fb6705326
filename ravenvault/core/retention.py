"""Retention policy evaluator: decides which snapshots survive GC.

Snapshots are ranked newest first.  The newest ``max_snapshots`` are
always kept, however old they are; every mutable snapshot outside that
window is deleted.  Immutable snapshots are never deleted, and the Snapshot
Manager re-checks immutability on every delete.

Blob sweeping only removes digests that no remaining snapshot references,
so a sweep can never leave a snapshot with a dangling reference.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from ravenvault.core.content_store import ContentStore
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.models.snapshots import RegenerationPolicy

logger = logging.getLogger(__name__)


class RetentionPolicyEvaluator:
    """Applies a ``RegenerationPolicy`` to the snapshot index.

    Parameters
    ----------
    snapshots:
        The snapshot manager whose index is pruned.
    content_store:
        Needed only for blob sweeping.
    """

    def __init__(
        self,
        snapshots: SnapshotManager,
        content_store: ContentStore | None = None,
    ) -> None:
        self._snapshots = snapshots
        self._store = content_store

    def plan(
        self, policy: RegenerationPolicy, *, now: datetime | None = None
    ) -> list[str]:
        """Ids that ``garbage_collect`` would delete, newest first.

        The newest ``max_snapshots`` always survive, whatever their age.
        ``now`` only anchors the age reported in the debug log.
        """
        now = now or datetime.now(timezone.utc)

        # Reverse creation order first so later-created snapshots rank
        # ahead on equal timestamps (sort is stable).
        ranked = sorted(
            reversed(self._snapshots.list_snapshots()),
            key=lambda s: s.timestamp,
            reverse=True,
        )

        doomed: list[str] = []
        for snapshot in ranked[policy.max_snapshots:]:
            if snapshot.immutable:
                continue
            logger.debug(
                "Snapshot %s is outside the retention window (age %s)",
                snapshot.id, now - snapshot.timestamp,
            )
            doomed.append(snapshot.id)
        return doomed

    def garbage_collect(
        self,
        policy: RegenerationPolicy,
        *,
        protected_digests: Iterable[str] = (),
        now: datetime | None = None,
    ) -> list[str]:
        """Delete every snapshot the policy rejects.  Returns deleted ids.

        When ``policy.preserve_history`` is false, blobs no longer
        referenced by any remaining snapshot (nor listed in
        ``protected_digests``) are swept afterwards.
        """
        deleted = [
            snapshot_id
            for snapshot_id in self.plan(policy, now=now)
            if self._snapshots.delete_snapshot(snapshot_id)
        ]
        logger.info(
            "Garbage collection deleted %d snapshot(s): %s",
            len(deleted), ", ".join(deleted) or "-",
        )

        if not policy.preserve_history and self._store is not None:
            self.sweep_blobs(protected_digests)
        return deleted

    def sweep_blobs(self, protected_digests: Iterable[str] = ()) -> list[str]:
        """Delete blobs that no snapshot references.  Returns deleted digests."""
        if self._store is None:
            raise RuntimeError("sweep_blobs requires a content store")

        keep = self._snapshots.referenced_digests() | set(protected_digests)
        swept = [
            blob_digest
            for blob_digest in self._store.list()
            if blob_digest not in keep and self._store.delete(blob_digest)
        ]
        if swept:
            logger.info("Swept %d unreferenced blob(s)", len(swept))
        return swept
