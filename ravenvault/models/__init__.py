"""RavenVault data models: all Pydantic v2, all frozen (immutable)."""

from ravenvault.models.blobs import Blob, BlobMetadata
from ravenvault.models.dag import (
    VALID_NODE_TRANSITIONS,
    DAGEdge,
    DAGNode,
    EdgeKind,
    MetadataDAG,
    NodeMetadata,
    NodeStatus,
    ValidationResult,
)
from ravenvault.models.events import TraceEvent, TraceEventType
from ravenvault.models.snapshots import (
    BackupSnapshot,
    RegenerationPolicy,
    RegenerationStrategy,
    RestoreReport,
)

__all__ = [
    # blobs
    "Blob",
    "BlobMetadata",
    # dag
    "NodeStatus",
    "VALID_NODE_TRANSITIONS",
    "EdgeKind",
    "ValidationResult",
    "NodeMetadata",
    "DAGNode",
    "DAGEdge",
    "MetadataDAG",
    # snapshots
    "RegenerationStrategy",
    "RegenerationPolicy",
    "BackupSnapshot",
    "RestoreReport",
    # events
    "TraceEventType",
    "TraceEvent",
]
