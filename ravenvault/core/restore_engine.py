"""Restore engine: replays a snapshot in dependency order.

Each node is classified either ``restored`` (its content is still in the
Content Store) or ``recompute`` (it must be regenerated by its owning
agent).  The engine never recomputes anything; its contract ends at the
``RestoreReport``.

A snapshot whose DAG fails consensus, or whose DAG contains a cycle, is a
data integrity failure: restore raises ``GraphInconsistencyError`` unless
the caller opts into best-effort mode.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ravenvault.core.content_store import ContentStore
from ravenvault.core.errors import GraphInconsistencyError, NotFoundError
from ravenvault.core.metadata_graph import MetadataGraph
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.core.trace import TraceEmitter
from ravenvault.models.dag import DAGNode
from ravenvault.models.events import TraceEventType
from ravenvault.models.snapshots import (
    BackupSnapshot,
    RegenerationPolicy,
    RegenerationStrategy,
    RestoreReport,
)

logger = logging.getLogger(__name__)

_SOURCE = "RestoreEngine"


class RestoreEngine:
    """Walks snapshots and classifies their nodes.

    Parameters
    ----------
    content_store:
        Where node digests are resolved.
    snapshots:
        Snapshot lookup, also used to find incremental baselines.
    emitter:
        Receives ``dag.snapshot.restored`` events.
    default_policy:
        Used when ``restore_snapshot`` is called without a policy.
    """

    def __init__(
        self,
        content_store: ContentStore,
        snapshots: SnapshotManager,
        *,
        emitter: TraceEmitter | None = None,
        default_policy: RegenerationPolicy | None = None,
    ) -> None:
        self._store = content_store
        self._snapshots = snapshots
        self._emitter = emitter or TraceEmitter()
        self._default_policy = default_policy or RegenerationPolicy()

    def restore_snapshot(
        self,
        snapshot_id: str,
        policy: RegenerationPolicy | None = None,
        *,
        selection: Iterable[str] | None = None,
        baseline_snapshot_id: str | None = None,
        best_effort: bool = False,
    ) -> RestoreReport:
        """Classify every node of a snapshot as restored or recompute.

        Parameters
        ----------
        snapshot_id:
            Snapshot to replay.
        policy:
            Regeneration policy; the engine default when omitted.
        selection:
            Node ids to walk, required for the ``selective`` strategy.
        baseline_snapshot_id:
            Explicit baseline for the ``incremental`` strategy.  Defaults
            to the most recent earlier snapshot that passed consensus.
        best_effort:
            Restore a snapshot that failed consensus or contains cycles.
            Cyclic nodes are then classified ``recompute``.

        Raises
        ------
        NotFoundError
            If the snapshot (or an explicit baseline) does not exist.
        GraphInconsistencyError
            If the DAG fails consensus or has a cycle and ``best_effort``
            is not set.
        ValueError
            If a ``selective`` restore has no selection or names unknown
            node ids.
        """
        policy = policy or self._default_policy
        snapshot = self._snapshots.get_snapshot(snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"Snapshot not found: {snapshot_id}")

        dag = snapshot.metadata_dag
        graph = MetadataGraph.from_dag(dag)

        consensus = graph.consensus_report()
        if not consensus.valid:
            if not best_effort:
                raise GraphInconsistencyError(
                    f"Snapshot {snapshot_id} failed consensus validation: "
                    + "; ".join(consensus.violations)
                )
            logger.warning(
                "Best-effort restore of snapshot %s despite %d consensus violation(s)",
                snapshot_id, len(consensus.violations),
            )

        order = graph.topological_order()
        cyclic = graph.cyclic_nodes()
        if cyclic and not best_effort:
            raise GraphInconsistencyError(
                f"Snapshot {snapshot_id} has a dependency cycle through: "
                + ", ".join(cyclic)
            )

        targets, baseline_id = self._select_targets(
            snapshot, graph, policy, selection, baseline_snapshot_id
        )

        upstream = graph.upstream_map()
        restored: list[str] = []
        recompute: list[str] = []
        skipped: list[str] = []
        flagged: set[str] = set()

        for node_id in order:
            if node_id not in targets:
                skipped.append(node_id)
                continue
            node = dag.nodes[node_id]
            if policy.cascade_recompute and any(up in flagged for up in upstream[node_id]):
                flagged.add(node_id)
                recompute.append(node_id)
            elif self._is_restorable(node, policy):
                restored.append(node_id)
            else:
                flagged.add(node_id)
                recompute.append(node_id)

        cyclic_targets = [nid for nid in cyclic if nid in targets]
        recompute.extend(cyclic_targets)
        skipped.extend(nid for nid in cyclic if nid not in targets)

        report = RestoreReport(
            snapshot_id=snapshot_id,
            strategy=policy.strategy,
            restored_nodes=restored,
            recompute_nodes=recompute,
            skipped_nodes=skipped,
            cyclic_nodes=cyclic,
            baseline_snapshot_id=baseline_id,
            consensus_valid=consensus.valid,
            best_effort=best_effort,
        )

        if report.needs_recompute:
            logger.info(
                "Snapshot %s: %d node(s) restored, %d need recomputation: %s",
                snapshot_id, len(restored), len(recompute), ", ".join(recompute),
            )
        else:
            logger.info("Snapshot %s: %d node(s) restored", snapshot_id, len(restored))

        self._emitter.emit(
            TraceEventType.SNAPSHOT_RESTORED,
            _SOURCE,
            {
                "snapshot_id": snapshot_id,
                "strategy": policy.strategy.value,
                "restored": len(restored),
                "recompute": len(recompute),
                "skipped": len(skipped),
            },
        )
        return report

    # ------------------------------------------------------------------
    # Strategy
    # ------------------------------------------------------------------

    def _select_targets(
        self,
        snapshot: BackupSnapshot,
        graph: MetadataGraph,
        policy: RegenerationPolicy,
        selection: Iterable[str] | None,
        baseline_snapshot_id: str | None,
    ) -> tuple[set[str], str | None]:
        """Node ids to walk, plus the incremental baseline id if one was used."""
        all_ids = set(snapshot.metadata_dag.nodes)

        if policy.strategy == RegenerationStrategy.SELECTIVE:
            chosen = set(selection or ())
            if not chosen:
                raise ValueError("Selective restore requires a non-empty selection")
            unknown = sorted(chosen - all_ids)
            if unknown:
                raise ValueError(
                    f"Selection names nodes absent from snapshot {snapshot.id}: "
                    + ", ".join(unknown)
                )
            return chosen, None

        if policy.strategy == RegenerationStrategy.INCREMENTAL:
            if baseline_snapshot_id is not None:
                baseline = self._snapshots.get_snapshot(baseline_snapshot_id)
                if baseline is None:
                    raise NotFoundError(f"Baseline snapshot not found: {baseline_snapshot_id}")
            else:
                baseline = self._snapshots.latest_snapshot(
                    created_before=snapshot.id, consensus_only=True
                )
            if baseline is None:
                logger.debug(
                    "No baseline for incremental restore of %s; walking every node",
                    snapshot.id,
                )
                return all_ids, None
            return graph.diff(baseline.metadata_dag), baseline.id

        return all_ids, None

    # ------------------------------------------------------------------
    # Node checks
    # ------------------------------------------------------------------

    def _is_restorable(self, node: DAGNode, policy: RegenerationPolicy) -> bool:
        if not node.is_completed:
            return False
        if policy.validate_before_restore:
            return self._validate_node(node)
        return self._store.exists(node.digest)

    def _validate_node(self, node: DAGNode) -> bool:
        """Content must still resolve and re-hash to the node's digest."""
        if not self._store.exists(node.digest):
            logger.debug("Node %s content missing: %s", node.id, node.digest)
            return False
        if not self._store.verify(node.digest):
            logger.warning(
                "Node %s content failed integrity check: %s", node.id, node.digest
            )
            return False
        return True
