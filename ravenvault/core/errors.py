"""Error taxonomy shared by the store, graph, snapshot and restore layers.

``NotFoundError`` and immutability refusals are expected outcomes; the
loops in restore and garbage collection receive them as values (``None``
or ``False``).  ``StoreError`` and ``GraphInconsistencyError`` are hard
failures and are never retried by the core.
"""

from __future__ import annotations


class RavenVaultError(Exception):
    """Base class for all RavenVault errors."""


class NotFoundError(RavenVaultError, LookupError):
    """Raised when a digest or snapshot id is unknown."""


class StoreError(RavenVaultError, RuntimeError):
    """Raised when the filesystem backing the store fails."""


class GraphInconsistencyError(RavenVaultError, ValueError):
    """Raised when an edge references a missing node or a cycle is found."""


class ImmutableViolationError(RavenVaultError, RuntimeError):
    """Raised when a caller insists on deleting an immutable snapshot."""


class DuplicateNodeError(RavenVaultError, ValueError):
    """Raised when a node id is added twice (nodes are append-only)."""


class InvalidNodeTransitionError(RavenVaultError, RuntimeError):
    """Raised when a node status transition is not allowed."""
