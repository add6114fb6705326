"""Snapshot, regeneration policy and restore report models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ravenvault.models.dag import MetadataDAG


class RegenerationStrategy(str, Enum):
    """How a snapshot is replayed during restore."""

    INCREMENTAL = "incremental"
    FULL = "full"
    SELECTIVE = "selective"


class RegenerationPolicy(BaseModel):
    """Pure configuration for the Restore Engine and the Retention Evaluator.

    ``ttl_days`` is carried for callers that age out their own records;
    garbage collection never prunes the newest ``max_snapshots`` by age.
    ``cascade_recompute`` flags every node downstream of a recompute node
    for recompute as well.
    """

    model_config = ConfigDict(frozen=True)

    strategy: RegenerationStrategy = RegenerationStrategy.INCREMENTAL
    validate_before_restore: bool = True
    preserve_history: bool = True
    max_snapshots: int = Field(default=10, ge=0)
    ttl_days: int = 30
    cascade_recompute: bool = False


class BackupSnapshot(BaseModel):
    """Point-in-time capture of a metadata DAG plus the digests it references.

    Never mutated after creation.  Immutable snapshots are exempt from
    deletion and garbage collection.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata_dag: MetadataDAG
    referenced_digests: list[str] = []
    version: str = "1.0.0"
    description: str = ""
    tags: list[str] = []
    immutable: bool = True

    @property
    def consensus_valid(self) -> bool:
        return self.metadata_dag.consensus_valid

    @property
    def node_count(self) -> int:
        return len(self.metadata_dag.nodes)


class RestoreReport(BaseModel):
    """Classification produced by a restore walk.

    ``recompute_nodes`` is the downstream contract: the owning agents are
    asked to recompute those ids.  The engine never recomputes anything.
    """

    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    strategy: RegenerationStrategy
    restored_nodes: list[str] = []
    recompute_nodes: list[str] = []
    skipped_nodes: list[str] = []  # unchanged since the baseline (incremental)
    cyclic_nodes: list[str] = []  # only populated in best-effort mode
    baseline_snapshot_id: str | None = None
    consensus_valid: bool = True
    best_effort: bool = False

    @property
    def needs_recompute(self) -> bool:
        return bool(self.recompute_nodes)

    @property
    def total_nodes(self) -> int:
        return (
            len(self.restored_nodes)
            + len(self.recompute_nodes)
            + len(self.skipped_nodes)
        )
