"""Metadata graph: computed artifacts and their relations.

The graph is an owned, lock-guarded structure.  ``add_node`` and
``add_edge`` are pure structural mutations; consensus is a separate pass
so incremental builds do not pay O(edges) per insertion.

Edges point downstream (``from_node`` is ordered before ``to_node``).
A node's ``deps`` count as implicit dependency edges ``dep -> node``.
"""

from __future__ import annotations

import heapq
import logging
import threading
from collections import deque
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from ravenvault.core.errors import (
    DuplicateNodeError,
    InvalidNodeTransitionError,
    NotFoundError,
)
from ravenvault.core.hasher import is_digest
from ravenvault.models.dag import (
    VALID_NODE_TRANSITIONS,
    DAGEdge,
    DAGNode,
    EdgeKind,
    MetadataDAG,
    NodeStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_VALIDATOR = "MetadataGraph"


class ConsensusReport(BaseModel):
    """Result of a consensus pass, with one entry per violated invariant."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    violations: list[str] = []


def check_consensus(
    nodes: dict[str, DAGNode], edges: Iterable[DAGEdge]
) -> ConsensusReport:
    """Recompute structural integrity from scratch.

    Every edge endpoint and every dep must name an existing node, and
    every completed node must carry a well-formed digest.
    """
    violations: list[str] = []
    for edge in edges:
        if edge.from_node not in nodes:
            violations.append(
                f"edge {edge.from_node}->{edge.to_node} references missing node {edge.from_node!r}"
            )
        if edge.to_node not in nodes:
            violations.append(
                f"edge {edge.from_node}->{edge.to_node} references missing node {edge.to_node!r}"
            )
    for node in nodes.values():
        for dep in node.deps:
            if dep not in nodes:
                violations.append(f"node {node.id!r} depends on missing node {dep!r}")
        if node.is_completed and not is_digest(node.digest):
            violations.append(
                f"completed node {node.id!r} has malformed digest {node.digest!r}"
            )
    return ConsensusReport(valid=not violations, violations=violations)


class MetadataGraph:
    """Mutable DAG of ``DAGNode`` records behind a single re-entrant lock.

    Node insertion order is remembered; it is the tie-break for
    topological ordering.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: dict[str, DAGNode] = {}
        self._edges: list[DAGEdge] = []

    @classmethod
    def from_dag(cls, dag: MetadataDAG) -> MetadataGraph:
        """Rebuild a graph from a frozen DAG, keeping insertion order."""
        graph = cls()
        graph._nodes = dict(dag.nodes)
        graph._edges = list(dag.edges)
        return graph

    @property
    def lock(self) -> threading.RLock:
        """The lock guarding mutation; hold it to batch several changes."""
        return self._lock

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, node: DAGNode) -> None:
        with self._lock:
            if node.id in self._nodes:
                raise DuplicateNodeError(f"Node {node.id!r} already exists")
            self._nodes[node.id] = node

    def add_edge(self, edge: DAGEdge) -> None:
        with self._lock:
            self._edges.append(edge)

    def remove_edge(
        self, from_node: str, to_node: str, kind: EdgeKind | None = None
    ) -> bool:
        """Remove every matching edge.  Returns ``True`` if any was removed."""
        with self._lock:
            kept = [
                e for e in self._edges
                if not (
                    e.from_node == from_node
                    and e.to_node == to_node
                    and (kind is None or e.kind == kind)
                )
            ]
            removed = len(kept) != len(self._edges)
            self._edges = kept
            return removed

    def transition(
        self, node_id: str, status: NodeStatus, digest: str | None = None
    ) -> DAGNode:
        """Move a node along ``pending -> computing -> completed | failed``.

        Completing a node requires its digest.  The stored record is
        replaced; the old record is never modified.
        """
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NotFoundError(f"Node {node_id!r} does not exist")
            if status not in VALID_NODE_TRANSITIONS[node.status]:
                raise InvalidNodeTransitionError(
                    f"Node {node_id!r}: {node.status.value} -> {status.value} is not allowed"
                )
            update: dict[str, object] = {"status": status}
            if status == NodeStatus.COMPLETED:
                if not digest:
                    raise InvalidNodeTransitionError(
                        f"Node {node_id!r} cannot complete without a digest"
                    )
                update["digest"] = digest
            elif status == NodeStatus.FAILED:
                update["digest"] = ""
            updated = node.model_copy(update=update)
            self._nodes[node_id] = updated
            return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> dict[str, DAGNode]:
        with self._lock:
            return dict(self._nodes)

    @property
    def edges(self) -> list[DAGEdge]:
        with self._lock:
            return list(self._edges)

    def get_node(self, node_id: str) -> DAGNode | None:
        with self._lock:
            return self._nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def _adjacency(self) -> dict[str, list[str]]:
        """Downstream neighbours per node, over edges plus deps.

        Edges and deps naming unknown nodes are ignored here; consensus
        reports them.  Duplicate relations collapse to one.
        """
        downstream: dict[str, list[str]] = {nid: [] for nid in self._nodes}
        seen: set[tuple[str, str]] = set()

        def link(upstream: str, node: str) -> None:
            if upstream not in self._nodes or node not in self._nodes:
                return
            if (upstream, node) in seen:
                return
            seen.add((upstream, node))
            downstream[upstream].append(node)

        for edge in self._edges:
            link(edge.from_node, edge.to_node)
        for node in self._nodes.values():
            for dep in node.deps:
                link(dep, node.id)
        return downstream

    def validate_consensus(self) -> bool:
        """Recompute consensus validity.  Never raises."""
        return self.consensus_report().valid

    def consensus_report(self) -> ConsensusReport:
        with self._lock:
            return check_consensus(self._nodes, self._edges)

    def topological_order(self) -> list[str]:
        """Kahn's algorithm with ascending insertion order among ready nodes.

        Nodes on or behind a cycle never reach in-degree zero and are
        omitted; see ``cyclic_nodes()``.
        """
        with self._lock:
            position = {nid: i for i, nid in enumerate(self._nodes)}
            downstream = self._adjacency()

        in_degree = {nid: 0 for nid in position}
        for targets in downstream.values():
            for target in targets:
                in_degree[target] += 1

        ready = [(position[nid], nid) for nid, deg in in_degree.items() if deg == 0]
        heapq.heapify(ready)
        result: list[str] = []
        while ready:
            _, node_id = heapq.heappop(ready)
            result.append(node_id)
            for target in downstream[node_id]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    heapq.heappush(ready, (position[target], target))
        return result

    def cyclic_nodes(self) -> list[str]:
        """Nodes that topological ordering cannot place, in insertion order."""
        ordered = set(self.topological_order())
        with self._lock:
            return [nid for nid in self._nodes if nid not in ordered]

    def get_dependents(self, node_id: str) -> list[str]:
        """Return all transitive downstream node ids (BFS)."""
        with self._lock:
            downstream = self._adjacency()
        result: list[str] = []
        queue = deque(downstream.get(node_id, []))
        visited: set[str] = set()
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            result.append(current)
            queue.extend(downstream.get(current, []))
        return result

    def upstream_map(self) -> dict[str, list[str]]:
        """Direct upstream node ids per node (edges and deps)."""
        with self._lock:
            downstream = self._adjacency()
        upstream: dict[str, list[str]] = {nid: [] for nid in downstream}
        for source, targets in downstream.items():
            for target in targets:
                upstream[target].append(source)
        return upstream

    def diff(self, baseline: MetadataDAG) -> set[str]:
        """Node ids that are new, or whose digest or status changed, since ``baseline``."""
        with self._lock:
            changed: set[str] = set()
            for nid, node in self._nodes.items():
                before = baseline.nodes.get(nid)
                if before is None:
                    changed.add(nid)
                elif before.digest != node.digest or before.status != node.status:
                    changed.add(nid)
            return changed

    # ------------------------------------------------------------------
    # Freezing
    # ------------------------------------------------------------------

    def freeze(
        self,
        *,
        version: str = "1.0.0",
        validated_by: list[str] | None = None,
    ) -> MetadataDAG:
        """Copy the graph into a ``MetadataDAG`` with consensus recomputed.

        The copy happens under the graph lock, so concurrent producers
        cannot tear it.
        """
        with self._lock:
            report = check_consensus(self._nodes, self._edges)
            if not report.valid:
                logger.warning(
                    "Freezing graph with %d consensus violation(s): %s",
                    len(report.violations),
                    "; ".join(report.violations),
                )
            return MetadataDAG(
                version=version,
                nodes=dict(self._nodes),
                edges=list(self._edges),
                consensus_valid=report.valid,
                validated_by=list(validated_by or [DEFAULT_VALIDATOR]),
            )
