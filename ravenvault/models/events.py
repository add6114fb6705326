"""Observability event model consumed by external tracing collaborators."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TraceEventType(str, Enum):
    """Every event the core emits."""

    CONTENT_STORED = "cas.content.stored"
    CONTENT_RETRIEVED = "cas.content.retrieved"
    CONTENT_DELETED = "cas.content.deleted"
    SNAPSHOT_CREATED = "dag.snapshot.created"
    SNAPSHOT_RESTORED = "dag.snapshot.restored"
    SNAPSHOT_DELETED = "dag.snapshot.deleted"


class TraceEvent(BaseModel):
    """A single emitted event."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: TraceEventType
    payload: dict[str, Any] = {}
    source_component: str
