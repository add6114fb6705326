"""Snapshot manager: freezes DAG states into named, persisted snapshots.

The snapshot index at ``{root}/metadata/snapshots.json`` is the single
source of truth across restarts.  It is a JSON array of every
``BackupSnapshot`` and is always rewritten atomically (temp file, fsync,
rename), so a crash mid-write leaves the previous index intact.

Directory layout::

    {root}/
        metadata/
            snapshots.json
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ravenvault.core.atomic import atomic_write_text
from ravenvault.core.errors import ImmutableViolationError, NotFoundError, StoreError
from ravenvault.core.metadata_graph import MetadataGraph
from ravenvault.core.trace import TraceEmitter
from ravenvault.models.dag import DAGEdge, DAGNode, MetadataDAG
from ravenvault.models.events import TraceEventType
from ravenvault.models.snapshots import BackupSnapshot

logger = logging.getLogger(__name__)

_SOURCE = "SnapshotManager"


class SnapshotManager:
    """Creates, lists, deletes and persists ``BackupSnapshot`` records.

    Parameters
    ----------
    root:
        Store root.  The index lives under ``root / "metadata"``.
    emitter:
        Receives ``dag.snapshot.*`` events.
    version:
        Version string stamped on new snapshots and their DAGs.
    """

    def __init__(
        self,
        root: Path,
        *,
        emitter: TraceEmitter | None = None,
        version: str = "1.0.0",
    ) -> None:
        self._metadata_dir = Path(root) / "metadata"
        self._index_path = self._metadata_dir / "snapshots.json"
        self._emitter = emitter or TraceEmitter()
        self._version = version
        self._lock = threading.RLock()
        # Insertion-ordered: snapshot_id -> BackupSnapshot
        self._snapshots: dict[str, BackupSnapshot] = {}

        try:
            self._metadata_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(
                f"Cannot create metadata directory {self._metadata_dir}: {exc}"
            ) from exc

        self.load_index()
        logger.debug(
            "SnapshotManager initialized at %s with %d snapshot(s)",
            self._metadata_dir,
            len(self._snapshots),
        )

    @property
    def index_path(self) -> Path:
        return self._index_path

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_snapshot(
        self,
        nodes: Mapping[str, DAGNode] | Iterable[DAGNode],
        edges: Iterable[DAGEdge],
        description: str,
        tags: Iterable[str] = (),
        immutable: bool = True,
        *,
        validated_by: list[str] | None = None,
    ) -> BackupSnapshot:
        """Freeze the given nodes and edges into a persisted snapshot.

        A snapshot whose consensus check fails is still created, so backup
        history is not lost; restore refuses it unless asked for best effort.
        """
        graph = MetadataGraph()
        node_iter = nodes.values() if isinstance(nodes, Mapping) else nodes
        for node in node_iter:
            graph.add_node(node)
        for edge in edges:
            graph.add_edge(edge)
        return self.create_snapshot_from_graph(
            graph,
            description,
            tags=tags,
            immutable=immutable,
            validated_by=validated_by,
        )

    def create_snapshot_from_graph(
        self,
        graph: MetadataGraph,
        description: str,
        tags: Iterable[str] = (),
        immutable: bool = True,
        *,
        validated_by: list[str] | None = None,
    ) -> BackupSnapshot:
        """Snapshot a live graph.  The copy is taken under the graph's lock."""
        dag = graph.freeze(version=self._version, validated_by=validated_by)
        return self._commit(dag, description, list(tags), immutable)

    def _commit(
        self,
        dag: MetadataDAG,
        description: str,
        tags: list[str],
        immutable: bool,
    ) -> BackupSnapshot:
        with self._lock:
            snapshot = BackupSnapshot(
                id=self._generate_snapshot_id(),
                metadata_dag=dag,
                referenced_digests=self._extract_digests(dag),
                version=self._version,
                description=description,
                tags=tags,
                immutable=immutable,
            )
            self._snapshots[snapshot.id] = snapshot
            try:
                self.persist_index()
            except StoreError:
                del self._snapshots[snapshot.id]
                raise

        if not snapshot.consensus_valid:
            logger.warning(
                "Snapshot %s created with consensus_valid=False; "
                "restore will require best-effort mode.",
                snapshot.id,
            )
        logger.info(
            "Created snapshot %s (%d nodes, immutable=%s)",
            snapshot.id, snapshot.node_count, immutable,
        )
        self._emitter.emit(
            TraceEventType.SNAPSHOT_CREATED,
            _SOURCE,
            {
                "snapshot_id": snapshot.id,
                "node_count": snapshot.node_count,
                "consensus_valid": snapshot.consensus_valid,
            },
        )
        return snapshot

    @staticmethod
    def _extract_digests(dag: MetadataDAG) -> list[str]:
        """Digests of completed nodes, deduplicated, in node order."""
        digests: list[str] = []
        seen: set[str] = set()
        for node in dag.nodes.values():
            if node.is_completed and node.digest and node.digest not in seen:
                seen.add(node.digest)
                digests.append(node.digest)
        return digests

    def _generate_snapshot_id(self) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        while True:
            snapshot_id = f"snap-{ts}-{uuid.uuid4().hex[:8]}"
            if snapshot_id not in self._snapshots:
                return snapshot_id

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def get_snapshot(self, snapshot_id: str) -> BackupSnapshot | None:
        with self._lock:
            return self._snapshots.get(snapshot_id)

    def list_snapshots(self) -> list[BackupSnapshot]:
        """All snapshots in creation order."""
        with self._lock:
            return list(self._snapshots.values())

    def latest_snapshot(
        self,
        *,
        created_before: str | None = None,
        consensus_only: bool = False,
    ) -> BackupSnapshot | None:
        """Most recently created snapshot matching the filters, or ``None``.

        ``created_before`` restricts the search to snapshots created
        before the given snapshot id.
        """
        snapshots = self.list_snapshots()
        if created_before is not None:
            ids = [s.id for s in snapshots]
            if created_before not in ids:
                raise NotFoundError(f"Snapshot not found: {created_before}")
            snapshots = snapshots[: ids.index(created_before)]
        for snapshot in reversed(snapshots):
            if consensus_only and not snapshot.consensus_valid:
                continue
            return snapshot
        return None

    def referrers(self, digest: str) -> list[str]:
        """Ids of snapshots that reference ``digest``."""
        return [s.id for s in self.list_snapshots() if digest in s.referenced_digests]

    def referenced_digests(self) -> set[str]:
        """Every digest referenced by any snapshot."""
        result: set[str] = set()
        for snapshot in self.list_snapshots():
            result.update(snapshot.referenced_digests)
        return result

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def require_deletable(self, snapshot_id: str) -> BackupSnapshot:
        """Return the snapshot if it may be deleted, raise otherwise.

        Raises
        ------
        NotFoundError
            If the snapshot does not exist.
        ImmutableViolationError
            If the snapshot is immutable.
        """
        snapshot = self.get_snapshot(snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"Snapshot not found: {snapshot_id}")
        if snapshot.immutable:
            raise ImmutableViolationError(
                f"Snapshot {snapshot_id} is immutable and cannot be deleted"
            )
        return snapshot

    def delete_snapshot(self, snapshot_id: str) -> bool:
        """Delete a mutable snapshot.

        Returns ``False`` (never raises) when the snapshot is absent or
        immutable.
        """
        with self._lock:
            snapshot = self._snapshots.get(snapshot_id)
            if snapshot is None:
                return False
            if snapshot.immutable:
                logger.info("Refusing to delete immutable snapshot %s", snapshot_id)
                return False
            del self._snapshots[snapshot_id]
            try:
                self.persist_index()
            except StoreError:
                self._snapshots[snapshot_id] = snapshot
                raise

        logger.info("Deleted snapshot %s", snapshot_id)
        self._emitter.emit(
            TraceEventType.SNAPSHOT_DELETED, _SOURCE, {"snapshot_id": snapshot_id}
        )
        return True

    # ------------------------------------------------------------------
    # Index management
    # ------------------------------------------------------------------

    def persist_index(self) -> None:
        """Atomically rewrite ``snapshots.json`` from the in-memory index."""
        with self._lock:
            data = [
                s.model_dump(mode="json", by_alias=True)
                for s in self._snapshots.values()
            ]
            try:
                atomic_write_text(self._index_path, json.dumps(data, indent=2))
            except OSError as exc:
                raise StoreError(
                    f"Failed to write snapshot index {self._index_path}: {exc}"
                ) from exc
        logger.debug(
            "Persisted index with %d snapshot(s) to %s", len(data), self._index_path
        )

    def load_index(self) -> None:
        """Load ``snapshots.json`` if it exists.

        A missing index means an empty store.  An unreadable or malformed
        index is a ``StoreError``: it is never silently discarded.
        """
        if not self._index_path.exists():
            return

        try:
            raw = json.loads(self._index_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StoreError(f"Failed to read {self._index_path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StoreError(f"Snapshot index {self._index_path} is corrupt: {exc}") from exc

        if not isinstance(raw, list):
            raise StoreError(
                f"Snapshot index {self._index_path} must be a JSON array, "
                f"got {type(raw).__name__}"
            )

        loaded: dict[str, BackupSnapshot] = {}
        for position, entry in enumerate(raw):
            try:
                snapshot = BackupSnapshot.model_validate(entry)
            except ValidationError as exc:
                raise StoreError(
                    f"Malformed snapshot at position {position} in {self._index_path}: {exc}"
                ) from exc
            loaded[snapshot.id] = snapshot

        with self._lock:
            self._snapshots = loaded
