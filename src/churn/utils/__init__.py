"""Shared utilities: hashing, ignore patterns, git plumbing."""

from churn.utils.hashing import bytes_hash, stable_json_hash
from churn.utils.ignore import (
    DEFAULT_EXCLUDE,
    build_spec,
    is_ignored,
    load_patterns,
    parse_ignore_file,
)

__all__ = [
    "DEFAULT_EXCLUDE",
    "build_spec",
    "bytes_hash",
    "is_ignored",
    "load_patterns",
    "parse_ignore_file",
    "stable_json_hash",
]
