"""Interfaces to the collaborators around the backup core.

The core never initiates computation.  Upstream, an ``ArtifactProducer``
(the agent layer) turns a ``NodeSpec`` into a ``ProducedArtifact``.
Downstream, a ``RecomputeRequester`` receives the node ids a restore
could not rehydrate.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from ravenvault.models.dag import EdgeKind, NodeMetadata


class NodeSpec(BaseModel):
    """What the core asks a producer to compute."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    deps: list[str] = []
    edge_kind: EdgeKind = EdgeKind.DEPENDENCY
    agent_id: str = ""
    trace_id: str = ""
    inputs: dict[str, Any] = {}


class ProducedArtifact(BaseModel):
    """A producer's output: the payload to store plus producer metadata."""

    model_config = ConfigDict(frozen=True)

    payload: Any
    metadata: NodeMetadata = NodeMetadata()
    blob_metadata: dict[str, Any] = {}


@runtime_checkable
class ArtifactProducer(Protocol):
    """Anything with ``produce(node_spec) -> ProducedArtifact``."""

    def produce(self, node_spec: NodeSpec) -> ProducedArtifact:
        ...


@runtime_checkable
class RecomputeRequester(Protocol):
    """Receives the ``recompute`` list of a restore report."""

    def request_recompute(self, snapshot_id: str, node_ids: list[str]) -> None:
        ...
