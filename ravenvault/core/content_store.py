"""Content-addressed, append-only blob store.

Storage layout: {root}/blobs/{sha256}.json, one file per blob holding
``{"payload": ..., "metadata": {...}}``.  Storing the same content twice
is a no-op write.  Deletion is explicit; the store does not track which
snapshots still reference a digest: that is the caller's job.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from ravenvault.core.atomic import atomic_write_text
from ravenvault.core.errors import NotFoundError, StoreError
from ravenvault.core.hasher import canonical_json_bytes, content_digest, digest, is_digest
from ravenvault.core.trace import TraceEmitter
from ravenvault.models.blobs import Blob, BlobMetadata
from ravenvault.models.events import TraceEventType

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_SOURCE = "ContentStore"


class PayloadCodec(Protocol[T]):
    """Serialization contract between a payload type and the store.

    ``to_jsonable`` must return plain JSON values; the digest is taken over
    their canonical bytes.  ``from_jsonable`` is its inverse.
    """

    def to_jsonable(self, payload: T) -> Any: ...

    def from_jsonable(self, data: Any) -> T: ...


class JsonCodec:
    """Codec for plain JSON values (dicts, lists, strings, numbers)."""

    def to_jsonable(self, payload: Any) -> Any:
        # Normalizes tuples to lists and rejects non-JSON values early.
        return json.loads(canonical_json_bytes(payload))

    def from_jsonable(self, data: Any) -> Any:
        return data


class ModelCodec(Generic[M]):
    """Codec for pydantic models of a single class."""

    def __init__(self, model_cls: type[M]) -> None:
        self._model_cls = model_cls

    def to_jsonable(self, payload: M) -> Any:
        return payload.model_dump(mode="json")

    def from_jsonable(self, data: Any) -> M:
        return self._model_cls.model_validate(data)


class ContentStore(Generic[T]):
    """SHA-256 keyed blob store.

    Parameters
    ----------
    root:
        Store root.  Blobs live under ``root / "blobs"``.
    codec:
        Payload serialization contract.  Defaults to ``JsonCodec``.
    emitter:
        Receives ``cas.content.*`` events.  A private emitter is created
        when omitted.
    """

    def __init__(
        self,
        root: Path,
        *,
        codec: PayloadCodec[T] | None = None,
        emitter: TraceEmitter | None = None,
    ) -> None:
        self._root = Path(root)
        self._blobs = self._root / "blobs"
        self._codec: PayloadCodec[T] = codec or JsonCodec()  # type: ignore[assignment]
        self._emitter = emitter or TraceEmitter()
        try:
            self._blobs.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"Cannot create blob directory {self._blobs}: {exc}") from exc

    @property
    def blobs_path(self) -> Path:
        return self._blobs

    def _blob_path(self, blob_digest: str) -> Path:
        return self._blobs / f"{blob_digest}.json"

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store(self, payload: T, metadata: dict[str, Any] | None = None) -> str:
        """Store a payload and return its digest.

        If the digest is already present nothing is written; the existing
        blob (and its original ``stored_at``) is kept.
        """
        jsonable = self._codec.to_jsonable(payload)
        data = canonical_json_bytes(jsonable)
        blob_digest = digest(data)
        path = self._blob_path(blob_digest)

        deduplicated = path.exists()
        if not deduplicated:
            blob_metadata = BlobMetadata(
                digest=blob_digest,
                size=len(data),
                extra=dict(metadata or {}),
            )
            record = {
                "payload": jsonable,
                "metadata": blob_metadata.model_dump(mode="json"),
            }
            try:
                atomic_write_text(path, json.dumps(record, indent=2, sort_keys=True))
            except OSError as exc:
                raise StoreError(f"Failed to write blob {blob_digest}: {exc}") from exc
            logger.debug("Stored blob %s (%d bytes)", blob_digest[:12], len(data))

        self._emitter.emit(
            TraceEventType.CONTENT_STORED,
            _SOURCE,
            {"digest": blob_digest, "size": len(data), "deduplicated": deduplicated},
        )
        return blob_digest

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def _read_record(self, blob_digest: str) -> dict[str, Any]:
        if not is_digest(blob_digest):
            raise NotFoundError(f"Content not found for digest: {blob_digest!r}")
        path = self._blob_path(blob_digest)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(f"Content not found for digest: {blob_digest}") from exc
        except OSError as exc:
            raise StoreError(f"Failed to read blob {blob_digest}: {exc}") from exc
        try:
            record = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Blob {blob_digest} is not valid JSON: {exc}") from exc
        if not isinstance(record, dict) or "payload" not in record:
            raise StoreError(f"Blob {blob_digest} has no payload")
        return record

    def retrieve(self, blob_digest: str) -> T:
        """Return the payload stored under ``blob_digest``.

        Raises
        ------
        NotFoundError
            If no blob exists for the digest.
        StoreError
            If the blob cannot be read or decoded.
        """
        record = self._read_record(blob_digest)
        self._emitter.emit(
            TraceEventType.CONTENT_RETRIEVED, _SOURCE, {"digest": blob_digest}
        )
        return self._codec.from_jsonable(record["payload"])

    def retrieve_blob(self, blob_digest: str) -> Blob:
        """Return payload and store-side metadata together."""
        record = self._read_record(blob_digest)
        self._emitter.emit(
            TraceEventType.CONTENT_RETRIEVED, _SOURCE, {"digest": blob_digest}
        )
        return Blob(
            digest=blob_digest,
            payload=self._codec.from_jsonable(record["payload"]),
            metadata=BlobMetadata.model_validate(record.get("metadata", {})),
        )

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, blob_digest: str) -> bool:
        """Check if a blob exists for the digest."""
        return is_digest(blob_digest) and self._blob_path(blob_digest).exists()

    def verify(self, blob_digest: str) -> bool:
        """Re-hash the stored payload and compare against its digest.

        Returns ``False`` for absent or undecodable blobs.
        """
        try:
            record = self._read_record(blob_digest)
        except NotFoundError:
            return False
        except StoreError as exc:
            logger.warning("Blob %s failed to load during verify: %s", blob_digest, exc)
            return False
        return content_digest(record["payload"]) == blob_digest

    # ------------------------------------------------------------------
    # Delete and enumerate
    # ------------------------------------------------------------------

    def delete(self, blob_digest: str) -> bool:
        """Remove a blob.  Returns ``False`` if it was not there."""
        if not is_digest(blob_digest):
            return False
        try:
            self._blob_path(blob_digest).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StoreError(f"Failed to delete blob {blob_digest}: {exc}") from exc

        self._emitter.emit(
            TraceEventType.CONTENT_DELETED, _SOURCE, {"digest": blob_digest}
        )
        return True

    def list(self) -> list[str]:
        """Return every stored digest, sorted.  Not for hot paths."""
        try:
            names = [p.stem for p in self._blobs.glob("*.json")]
        except OSError as exc:
            raise StoreError(f"Failed to list {self._blobs}: {exc}") from exc
        return sorted(name for name in names if is_digest(name))

    # ------------------------------------------------------------------
    # Async offload
    # ------------------------------------------------------------------

    async def astore(self, payload: T, metadata: dict[str, Any] | None = None) -> str:
        return await asyncio.to_thread(self.store, payload, metadata)

    async def aretrieve(self, blob_digest: str) -> T:
        return await asyncio.to_thread(self.retrieve, blob_digest)

    async def aexists(self, blob_digest: str) -> bool:
        return await asyncio.to_thread(self.exists, blob_digest)

    async def alist(self) -> list[str]:
        return await asyncio.to_thread(self.list)
