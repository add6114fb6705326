"""Content-addressed blob models (append-only: no update, explicit delete)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BlobMetadata(BaseModel):
    """Store-side metadata written next to the payload.

    ``size`` is the length of the canonical serialized payload in bytes.
    ``extra`` carries whatever the producer handed to ``store()``.
    """

    model_config = ConfigDict(frozen=True)

    digest: str
    size: int
    stored_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    extra: dict[str, Any] = {}


class Blob(BaseModel):
    """A stored payload and its metadata.  Owned by the Content Store."""

    model_config = ConfigDict(frozen=True)

    digest: str
    payload: Any
    metadata: BlobMetadata
