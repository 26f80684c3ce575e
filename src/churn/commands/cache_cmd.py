"""Cache command: show statistics, evict stale entries, or clear the analysis cache."""

from __future__ import annotations

import sys
from argparse import Namespace
from datetime import datetime, timezone
from pathlib import Path

from churn.config import cache_dir
from churn.storage.cache import MAX_AGE_DAYS, CacheStore
from churn.storage.models import CacheStats


def _format_epoch(value: float | None) -> str:
    if value is None:
        return "never"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _print_stats(stats: CacheStats, location: Path) -> None:
    print(f"Analysis cache ({location})")
    print()
    print(f"  Entries:     {stats.entries}")
    print(f"  Suggestions: {stats.suggestions}")
    print(f"  Tokens:      {stats.tokens}")
    print(f"  Oldest:      {_format_epoch(stats.oldest)}")
    print(f"  Newest:      {_format_epoch(stats.newest)}")
    if stats.backends:
        print("  By backend:")
        for backend, count in sorted(stats.backends.items()):
            print(f"    {backend}: {count}")


def run(args: Namespace) -> None:
    """Run the cache command."""
    root: Path = getattr(args, "path", Path(".")).resolve()
    if not root.is_dir():
        print(f"Error: not a directory: {root}", file=sys.stderr)
        sys.exit(1)
    directory = cache_dir(root)

    if getattr(args, "clear", False):
        store = CacheStore.load(directory, evict=False)
        removed = store.clear()
        store.save()
        print(f"Cleared {removed} cache entries.")
        return

    if getattr(args, "evict", False):
        store = CacheStore.load(directory, evict=False)
        removed = store.evict_stale()
        store.save()
        print(f"Evicted {removed} entries older than {MAX_AGE_DAYS} days; {len(store)} remain.")
        return

    store = CacheStore.load(directory, evict=False)
    _print_stats(store.stats(), directory)
