"""Canonical hashing helpers for content addressing.

Payloads are canonicalized before hashing: sorted keys, compact
separators, ASCII-only, UTF-8.  Two payloads that are semantically equal
but canonicalize differently (e.g. ``1`` vs ``1.0``) get different
digests.  That is accepted, not corrected.

SHA-256 collisions are treated as impossible; nothing guards against them.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

DIGEST_LENGTH = 64

_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes (sorted keys, compact separators)."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def digest(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_digest(obj: Any) -> str:
    """Digest of a JSON-serializable object's canonical bytes."""
    return digest(canonical_json_bytes(obj))


def is_digest(value: str) -> bool:
    """Whether ``value`` looks like a digest this module produces."""
    return isinstance(value, str) and bool(_DIGEST_RE.match(value))
