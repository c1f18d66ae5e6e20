"""QueryCache: key-addressed, subscribable store of collection snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Literal, Optional

from ordersync.models import OrderedEntity
from ordersync.observability import get_logger
from ordersync.util.time import now_utc

from .snapshot import CollectionSnapshot

logger = get_logger(__name__)

CacheEventKind = Literal["updated", "invalidated", "removed"]


@dataclass(frozen=True, slots=True)
class CacheEvent:
    """Notification delivered to subscribers after a cache change."""

    key: str
    kind: CacheEventKind
    version: int
    entities: tuple[OrderedEntity, ...] = ()


Listener = Callable[[CacheEvent], None]


@dataclass(slots=True)
class _Entry:
    snapshot: CollectionSnapshot
    version: int = 0
    stale: bool = False
    updated_at: datetime = field(default_factory=now_utc)


class QueryCache:
    """
    In-memory cache of collections, one instance per admin session.

    Entries never expire on their own; they are replaced by writes and marked
    stale by `invalidate`. Readers get tuples of immutable entities; only the
    coordinator writes, through `set_entities` and `update`.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._listeners: dict[str, list[Listener]] = {}

    # ----------------------------
    # Read APIs
    # ----------------------------
    def has(self, key: str) -> bool:
        return key in self._entries

    def get_entities(self, key: str) -> Optional[tuple[OrderedEntity, ...]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return tuple(entry.snapshot.entities)

    def get_snapshot(self, key: str) -> Optional[CollectionSnapshot]:
        """Return a clone of the stored snapshot (safe to mutate)."""
        entry = self._entries.get(key)
        return None if entry is None else entry.snapshot.clone()

    def version(self, key: str) -> int:
        entry = self._entries.get(key)
        return 0 if entry is None else entry.version

    def is_stale(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def keys(self) -> list[str]:
        return list(self._entries)

    # ----------------------------
    # Write APIs
    # ----------------------------
    def set_entities(
        self,
        key: str,
        entities: Iterable[OrderedEntity],
        *,
        sort: bool = True,
    ) -> tuple[OrderedEntity, ...]:
        """Replace the whole snapshot for `key`."""
        snapshot = CollectionSnapshot.from_entities(entities, sort=sort)
        return self._store(key, snapshot)

    def update(
        self,
        key: str,
        mutate: Callable[[CollectionSnapshot], None],
    ) -> tuple[OrderedEntity, ...]:
        """
        Apply `mutate` to a clone of the current snapshot and swap it in.

        The swap is a single assignment, so subscribers never observe a
        half-applied write.
        """
        entry = self._entries.get(key)
        working = entry.snapshot.clone() if entry is not None else CollectionSnapshot()
        mutate(working)
        return self._store(key, working)

    def invalidate(self, key: str) -> bool:
        """Mark an entry stale. Returns False if the key was never loaded."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        entry.stale = True
        entry.version += 1
        logger.debug("cache_invalidated", key=key, version=entry.version)
        self._emit(CacheEvent(key=key, kind="invalidated", version=entry.version))
        return True

    def remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._emit(CacheEvent(key=key, kind="removed", version=entry.version + 1))
        return True

    def clear(self) -> None:
        for key in list(self._entries):
            self.remove(key)

    # ----------------------------
    # Subscriptions
    # ----------------------------
    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """Register a listener for `key`; returns an unsubscribe callable."""
        listeners = self._listeners.setdefault(key, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            current = self._listeners.get(key)
            if current and listener in current:
                current.remove(listener)
                if not current:
                    self._listeners.pop(key, None)

        return unsubscribe

    # ----------------------------
    # Internals
    # ----------------------------
    def _store(self, key: str, snapshot: CollectionSnapshot) -> tuple[OrderedEntity, ...]:
        previous = self._entries.get(key)
        version = previous.version + 1 if previous is not None else 1
        self._entries[key] = _Entry(snapshot=snapshot, version=version)
        entities = tuple(snapshot.entities)
        self._emit(CacheEvent(key=key, kind="updated", version=version, entities=entities))
        return entities

    def _emit(self, event: CacheEvent) -> None:
        for listener in list(self._listeners.get(event.key, ())):
            try:
                listener(event)
            except Exception:
                logger.exception("cache_listener_failed", key=event.key, kind=event.kind)
