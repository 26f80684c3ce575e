"""Data models for persistent storage (cache entries and cache statistics)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from churn.analysis.models import Suggestion


@dataclass
class CacheEntry:
    """Cached analysis of one file, keyed in the store by relative posix path."""

    file_hash: str  # SHA-256 of the exact bytes analyzed
    suggestions: list[Suggestion]
    last_modified: float  # Epoch seconds when the entry was written

    # Every field below is part of the hit condition
    provider: str = ""
    model: str = ""
    prompt_version: str = ""
    context_hash: str = ""

    token_count: Optional[int] = None  # Prompt tokens spent producing this entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_hash": self.file_hash,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "last_modified": self.last_modified,
            "provider": self.provider,
            "model": self.model,
            "prompt_version": self.prompt_version,
            "context_hash": self.context_hash,
            "token_count": self.token_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """Raises KeyError/ValueError/TypeError if the stored entry is malformed."""
        token_count = data.get("token_count")
        return cls(
            file_hash=str(data["file_hash"]),
            suggestions=[Suggestion.from_dict(s) for s in data["suggestions"]],
            last_modified=float(data["last_modified"]),
            provider=str(data["provider"]),
            model=str(data["model"]),
            prompt_version=str(data["prompt_version"]),
            context_hash=str(data["context_hash"]),
            token_count=int(token_count) if token_count is not None else None,
        )


@dataclass
class CacheStats:
    """Aggregated cache statistics for `churn cache --stats`."""

    entries: int = 0
    suggestions: int = 0
    tokens: int = 0
    oldest: Optional[float] = None  # Epoch seconds
    newest: Optional[float] = None
    backends: dict[str, int] = field(default_factory=dict)  # "provider:model" -> count
