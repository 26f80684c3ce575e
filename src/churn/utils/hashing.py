"""Content hashing for cache keys and fingerprints (SHA-256)."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def bytes_hash(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def stable_json_hash(value: dict[str, Any], length: int = 16) -> str:
    """
    Short fingerprint of a JSON-serializable mapping.

    Keys are sorted and separators fixed so equal mappings always hash the same,
    regardless of insertion order.
    """
    text = json.dumps(value, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]
