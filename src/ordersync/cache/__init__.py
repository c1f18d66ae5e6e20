"""Local reactive cache exports for ordersync."""

from __future__ import annotations

from .query_cache import CacheEvent, Listener, QueryCache
from .snapshot import CollectionSnapshot

__all__ = [
    "QueryCache",
    "CacheEvent",
    "Listener",
    "CollectionSnapshot",
]
