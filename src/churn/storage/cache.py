"""
Content-addressed analysis cache persisted as one JSON file per project.

A hit needs the same bytes (SHA-256), the same backend (provider and model),
the same prompt version and the same project-context fingerprint, and an
entry younger than MAX_AGE_DAYS. The store is not thread-safe: it is only
touched from the scheduler's coordinating thread.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from churn.analysis.models import Suggestion
from churn.llm.base import BackendId
from churn.storage.models import CacheEntry, CacheStats
from churn.utils.hashing import bytes_hash

logger = logging.getLogger(__name__)

CACHE_FILENAME = "analysis-cache.json"
CACHE_VERSION = "1.0.0"
MAX_AGE_DAYS = 30
MAX_AGE_SECONDS = MAX_AGE_DAYS * 24 * 60 * 60


class CacheStore:
    """In-memory map of relative path -> CacheEntry with load/save to disk."""

    def __init__(self, cache_dir: Path | str | None = None, entries: dict[str, CacheEntry] | None = None) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.entries: dict[str, CacheEntry] = dict(entries or {})

    @property
    def path(self) -> Path | None:
        return self.cache_dir / CACHE_FILENAME if self.cache_dir is not None else None

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, relative_path: object) -> bool:
        return relative_path in self.entries

    @classmethod
    def load(cls, cache_dir: Path | str, evict: bool = True) -> "CacheStore":
        """
        Load the store from cache_dir. A missing, unreadable, corrupt or
        wrong-version file yields an empty store; malformed entries are dropped.
        Stale entries are evicted unless evict is False.
        """
        store = cls(cache_dir)
        path = Path(cache_dir) / CACHE_FILENAME
        if not path.is_file():
            return store
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cache %s: %s", path, e)
            return store
        if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
            logger.warning("Ignoring cache %s: unexpected structure", path)
            return store
        if data.get("version") != CACHE_VERSION:
            logger.info("Ignoring cache %s: version %r != %s", path, data.get("version"), CACHE_VERSION)
            return store

        dropped = 0
        for rel, raw in data["entries"].items():
            if not isinstance(raw, dict):
                dropped += 1
                continue
            try:
                store.entries[str(rel)] = CacheEntry.from_dict(raw)
            except (KeyError, ValueError, TypeError) as e:
                logger.debug("Dropping malformed cache entry %s: %s", rel, e)
                dropped += 1
        if dropped:
            logger.warning("Dropped %d malformed cache entries from %s", dropped, path)
        if evict:
            store.evict_stale()
        return store

    def lookup(
        self,
        relative_path: str,
        content: bytes,
        backend: BackendId,
        prompt_version: str,
        context_hash: str,
        now: float | None = None,
    ) -> CacheEntry | None:
        """Return the entry only if every key component matches and it is fresh."""
        entry = self.entries.get(relative_path)
        if entry is None:
            return None
        if entry.file_hash != bytes_hash(content):
            return None
        if entry.provider != backend.provider or entry.model != backend.model:
            return None
        if entry.prompt_version != prompt_version:
            return None
        if entry.context_hash != context_hash:
            return None
        now = time.time() if now is None else now
        if now - entry.last_modified > MAX_AGE_SECONDS:
            return None
        return entry

    def get(
        self,
        relative_path: str,
        content: bytes,
        backend: BackendId,
        prompt_version: str,
        context_hash: str,
    ) -> list[Suggestion] | None:
        """Cached suggestions on a hit, None on a miss."""
        entry = self.lookup(relative_path, content, backend, prompt_version, context_hash)
        return list(entry.suggestions) if entry is not None else None

    def put(
        self,
        relative_path: str,
        content: bytes,
        suggestions: list[Suggestion],
        backend: BackendId,
        prompt_version: str,
        context_hash: str,
        token_count: int | None = None,
        now: float | None = None,
    ) -> CacheEntry:
        """Hash content and store (overwriting any previous entry for the path)."""
        entry = CacheEntry(
            file_hash=bytes_hash(content),
            suggestions=list(suggestions),
            last_modified=time.time() if now is None else now,
            provider=backend.provider,
            model=backend.model,
            prompt_version=prompt_version,
            context_hash=context_hash,
            token_count=token_count,
        )
        self.entries[relative_path] = entry
        return entry

    def evict_stale(self, now: float | None = None) -> int:
        """Remove entries older than MAX_AGE_DAYS. Returns the number removed."""
        now = time.time() if now is None else now
        stale = [rel for rel, e in self.entries.items() if now - e.last_modified > MAX_AGE_SECONDS]
        for rel in stale:
            del self.entries[rel]
        if stale:
            logger.debug("Evicted %d stale cache entries", len(stale))
        return len(stale)

    def clear(self) -> int:
        n = len(self.entries)
        self.entries.clear()
        return n

    def stats(self) -> CacheStats:
        stats = CacheStats(entries=len(self.entries))
        for entry in self.entries.values():
            stats.suggestions += len(entry.suggestions)
            stats.tokens += entry.token_count or 0
            key = f"{entry.provider}:{entry.model}"
            stats.backends[key] = stats.backends.get(key, 0) + 1
            if stats.oldest is None or entry.last_modified < stats.oldest:
                stats.oldest = entry.last_modified
            if stats.newest is None or entry.last_modified > stats.newest:
                stats.newest = entry.last_modified
        return stats

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": CACHE_VERSION,
            "entries": {rel: entry.to_dict() for rel, entry in sorted(self.entries.items())},
        }

    def save(self, cache_dir: Path | str | None = None) -> Path:
        """
        Rewrite the whole cache file. Writes to a temporary file in the same
        directory and renames it over the old one so readers never see a
        partial file. Raises OSError if the directory cannot be written.
        """
        if cache_dir is not None:
            self.cache_dir = Path(cache_dir)
        if self.cache_dir is None:
            raise ValueError("CacheStore has no cache_dir to save to")
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        target = self.cache_dir / CACHE_FILENAME
        fd, tmp_name = tempfile.mkstemp(prefix=".analysis-cache-", suffix=".tmp", dir=self.cache_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2)
                f.write("\n")
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d cache entries to %s", len(self.entries), target)
        return target
