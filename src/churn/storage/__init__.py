"""Persistent project state: analysis cache and run reports."""

from churn.storage.cache import CACHE_VERSION, CacheStore
from churn.storage.models import CacheEntry, CacheStats

__all__ = [
    "CACHE_VERSION",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
]
