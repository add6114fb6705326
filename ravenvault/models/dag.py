"""Metadata DAG models: computed artifacts and the relations between them.

Nodes reference content by digest only; the Content Store never learns
node identity.  A node's digest is meaningful once its status is
``COMPLETED``.  ``FAILED`` nodes have no recoverable digest.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NodeStatus(str, Enum):
    """Lifecycle of a computed artifact."""

    PENDING = "pending"
    COMPUTING = "computing"
    COMPLETED = "completed"
    FAILED = "failed"


# Valid status transitions: enforced by MetadataGraph.transition().
# COMPLETED and FAILED are terminal.
VALID_NODE_TRANSITIONS: dict[NodeStatus, set[NodeStatus]] = {
    NodeStatus.PENDING: {NodeStatus.COMPUTING},
    NodeStatus.COMPUTING: {NodeStatus.COMPLETED, NodeStatus.FAILED},
    NodeStatus.COMPLETED: set(),  # terminal
    NodeStatus.FAILED: set(),  # terminal
}


class EdgeKind(str, Enum):
    """Kind of relation an edge records."""

    DEPENDENCY = "dependency"
    DATA_FLOW = "data-flow"
    CONTROL_FLOW = "control-flow"


class ValidationResult(BaseModel):
    """Outcome of a producer-side or store-side validation."""

    model_config = ConfigDict(frozen=True)

    result: bool = True
    consensus: bool = True
    reason: str = ""
    details: dict[str, Any] = {}


class NodeMetadata(BaseModel):
    """Producer metadata recorded alongside a node."""

    model_config = ConfigDict(frozen=True)

    agent_role: str = ""
    capability: str = ""
    input_digests: list[str] = []
    output_digests: list[str] = []
    computation_time: float = 0.0  # milliseconds
    memory_usage: float = 0.0  # megabytes
    validation_result: ValidationResult = ValidationResult()
    design_intent: str = ""
    user_requirement: str = ""


class DAGNode(BaseModel):
    """A computed artifact in the metadata DAG."""

    model_config = ConfigDict(frozen=True)

    id: str
    digest: str = ""  # only meaningful when status == COMPLETED
    deps: list[str] = []  # upstream node ids
    metadata: NodeMetadata = NodeMetadata()
    status: NodeStatus = NodeStatus.PENDING
    agent_id: str = ""
    trace_id: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == NodeStatus.COMPLETED


class DAGEdge(BaseModel):
    """A directed relation ``from_node -> to_node``.

    ``from_node`` is upstream: topological order places it before
    ``to_node``.  Serialized with the keys ``from`` and ``to``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_node: str = Field(alias="from")
    to_node: str = Field(alias="to")
    kind: EdgeKind = EdgeKind.DEPENDENCY
    metadata: dict[str, Any] = {}


class MetadataDAG(BaseModel):
    """A frozen view of the graph, as captured inside a snapshot.

    ``consensus_valid`` is derived.  It is only truthful as of the moment
    the DAG was frozen; the restore path recomputes it.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    version: str = "1.0.0"
    nodes: dict[str, DAGNode] = {}
    edges: list[DAGEdge] = []
    consensus_valid: bool = False
    validated_by: list[str] = []
