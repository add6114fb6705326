"""Backup manager: the central coordinator for a store root.

Wires the ContentStore, MetadataGraph, SnapshotManager, RestoreEngine,
RetentionPolicyEvaluator and TraceEmitter together.  Producers hand
artifacts in through ``record_artifact`` or ``ingest``; snapshots freeze
the live graph; restores classify nodes; the recompute list is handed to
a downstream collaborator.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ravenvault.config import VaultConfig
from ravenvault.core.collaborators import (
    ArtifactProducer,
    NodeSpec,
    RecomputeRequester,
)
from ravenvault.core.content_store import ContentStore
from ravenvault.core.metadata_graph import MetadataGraph
from ravenvault.core.restore_engine import RestoreEngine
from ravenvault.core.retention import RetentionPolicyEvaluator
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.core.trace import TraceEmitter
from ravenvault.models.dag import (
    DAGEdge,
    DAGNode,
    EdgeKind,
    NodeMetadata,
    NodeStatus,
)
from ravenvault.models.snapshots import (
    BackupSnapshot,
    RegenerationPolicy,
    RestoreReport,
)

logger = logging.getLogger(__name__)


class BackupManager:
    """Owns every backup subsystem for one store root.

    Parameters
    ----------
    root:
        Store root.  Defaults to ``settings.store_root``.
    settings:
        Configuration.  A fresh ``VaultConfig`` is read when omitted.
    graph:
        Live graph to record into.  A new empty graph when omitted.
    """

    def __init__(
        self,
        root: Path | None = None,
        *,
        settings: VaultConfig | None = None,
        graph: MetadataGraph | None = None,
    ) -> None:
        self.settings = settings or VaultConfig()
        self.root = Path(root) if root is not None else self.settings.store_root

        self.emitter = TraceEmitter()
        self.content_store: ContentStore = ContentStore(self.root, emitter=self.emitter)
        self.graph = graph or MetadataGraph()
        self.snapshots = SnapshotManager(
            self.root,
            emitter=self.emitter,
            version=self.settings.snapshot_version,
        )
        self.restore_engine = RestoreEngine(
            self.content_store,
            self.snapshots,
            emitter=self.emitter,
            default_policy=self.settings.default_policy(),
        )
        self.retention = RetentionPolicyEvaluator(self.snapshots, self.content_store)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def record_artifact(
        self,
        node_id: str,
        payload: Any,
        *,
        deps: Iterable[str] = (),
        metadata: NodeMetadata | None = None,
        agent_id: str = "",
        trace_id: str = "",
        edge_kind: EdgeKind = EdgeKind.DEPENDENCY,
        blob_metadata: dict[str, Any] | None = None,
    ) -> DAGNode:
        """Store a payload and record it as a completed node.

        Every dep also gets an explicit edge ``dep -> node_id`` of
        ``edge_kind``.  Node insertion and its edges happen under the
        graph lock, so a concurrent snapshot sees all of them or none.
        """
        deps = list(deps)
        digest = self.content_store.store(payload, blob_metadata)
        node = DAGNode(
            id=node_id,
            digest=digest,
            deps=deps,
            metadata=metadata or NodeMetadata(),
            status=NodeStatus.COMPLETED,
            agent_id=agent_id,
            trace_id=trace_id,
        )
        with self.graph.lock:
            self.graph.add_node(node)
            for dep in deps:
                self.graph.add_edge(DAGEdge(from_node=dep, to_node=node_id, kind=edge_kind))
        logger.debug("Recorded node %s -> %s", node_id, digest[:12])
        return node

    def ingest(self, node_spec: NodeSpec, producer: ArtifactProducer) -> DAGNode:
        """Ask a producer for a node's artifact, then record it."""
        produced = producer.produce(node_spec)
        return self.record_artifact(
            node_spec.node_id,
            produced.payload,
            deps=node_spec.deps,
            metadata=produced.metadata,
            agent_id=node_spec.agent_id,
            trace_id=node_spec.trace_id,
            edge_kind=node_spec.edge_kind,
            blob_metadata=produced.blob_metadata,
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def create_snapshot(
        self,
        description: str,
        tags: Iterable[str] = (),
        immutable: bool | None = None,
    ) -> BackupSnapshot:
        """Snapshot the live graph."""
        if immutable is None:
            immutable = self.settings.immutable_by_default
        return self.snapshots.create_snapshot_from_graph(
            self.graph, description, tags=tags, immutable=immutable
        )

    def list_snapshots(self) -> list[BackupSnapshot]:
        return self.snapshots.list_snapshots()

    def delete_snapshot(self, snapshot_id: str) -> bool:
        return self.snapshots.delete_snapshot(snapshot_id)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore_snapshot(
        self,
        snapshot_id: str,
        policy: RegenerationPolicy | None = None,
        *,
        selection: Iterable[str] | None = None,
        baseline_snapshot_id: str | None = None,
        best_effort: bool = False,
    ) -> RestoreReport:
        return self.restore_engine.restore_snapshot(
            snapshot_id,
            policy,
            selection=selection,
            baseline_snapshot_id=baseline_snapshot_id,
            best_effort=best_effort,
        )

    def dispatch_recompute(
        self, report: RestoreReport, requester: RecomputeRequester
    ) -> int:
        """Hand the report's recompute list downstream.  Returns its length."""
        if not report.recompute_nodes:
            return 0
        requester.request_recompute(report.snapshot_id, list(report.recompute_nodes))
        logger.info(
            "Requested recomputation of %d node(s) from snapshot %s",
            len(report.recompute_nodes), report.snapshot_id,
        )
        return len(report.recompute_nodes)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def garbage_collect(self, policy: RegenerationPolicy | None = None) -> list[str]:
        """Prune snapshots; live-graph digests are protected from blob sweeps."""
        policy = policy or self.settings.default_policy()
        live = [n.digest for n in self.graph.nodes.values() if n.is_completed]
        return self.retention.garbage_collect(policy, protected_digests=live)

    def delete_blob(self, digest: str) -> bool:
        """Delete a blob unless a snapshot still references it."""
        referrers = self.snapshots.referrers(digest)
        if referrers:
            logger.warning(
                "Refusing to delete blob %s referenced by snapshot(s): %s",
                digest, ", ".join(referrers),
            )
            return False
        return self.content_store.delete(digest)
