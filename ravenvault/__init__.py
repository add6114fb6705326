"""RavenVault: content-addressed backup engine with a metadata DAG.

  - SHA-256 content store, append-only, idempotent writes
  - Metadata DAG with consensus validation and deterministic topological order
  - Snapshots persisted through an atomically rewritten index
  - Restore classification (restored / recompute) in dependency order
  - Retention policy with immutable snapshots exempt from GC
"""

__version__ = "0.1.0"
__description__ = "Content-addressed backup engine with a metadata DAG"

from ravenvault.core.backup_manager import BackupManager
from ravenvault.core.content_store import ContentStore
from ravenvault.core.metadata_graph import MetadataGraph
from ravenvault.core.restore_engine import RestoreEngine
from ravenvault.core.retention import RetentionPolicyEvaluator
from ravenvault.core.snapshot_manager import SnapshotManager

__all__ = [
    "BackupManager",
    "ContentStore",
    "MetadataGraph",
    "RestoreEngine",
    "RetentionPolicyEvaluator",
    "SnapshotManager",
    "__version__",
]
