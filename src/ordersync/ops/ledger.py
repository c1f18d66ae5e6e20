"""Field ledger: routes rollbacks so they never clobber newer writes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ordersync.models import EntityId


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()
"""Baseline marker for a payload field that did not exist before the write."""


@dataclass(slots=True)
class _Write:
    op_id: str
    baseline: Any


FieldKey = tuple[str, EntityId, str]


class FieldLedger:
    """
    Tracks, per (cache_key, entity, field), the live operations that wrote it.

    Writes are kept in issue order. The last write owns the field.

    Rules:
        - record: first write of an op captures the baseline; re-recording
          the same op (a revised reorder) keeps the original baseline.
        - fail: the owner restores its baseline; a superseded op hands its
          baseline to the next writer and restores nothing.
        - succeed: the op and every earlier write are dropped (the confirmed
          value supersedes them).
    """

    def __init__(self) -> None:
        self._writes: dict[FieldKey, list[_Write]] = {}

    def record(
        self,
        op_id: str,
        cache_key: str,
        entity_id: EntityId,
        field_name: str,
        baseline: Any,
    ) -> None:
        writes = self._writes.setdefault((cache_key, entity_id, field_name), [])
        for w in writes:
            if w.op_id == op_id:
                return
        writes.append(_Write(op_id=op_id, baseline=baseline))

    def owner(self, cache_key: str, entity_id: EntityId, field_name: str) -> Optional[str]:
        writes = self._writes.get((cache_key, entity_id, field_name))
        if not writes:
            return None
        return writes[-1].op_id

    def fail(
        self,
        op_id: str,
        cache_key: str,
        entity_id: EntityId,
        field_name: str,
    ) -> tuple[bool, Any]:
        """
        Settle a failed write.

        Returns:
            (restore, baseline): restore is True if the caller must write
            baseline back into the cache.
        """
        key = (cache_key, entity_id, field_name)
        writes = self._writes.get(key)
        idx = _index_of(writes, op_id)
        if writes is None or idx is None:
            return False, None

        write = writes.pop(idx)
        if idx < len(writes):
            writes[idx].baseline = write.baseline
            restore = False
        else:
            restore = True

        if not writes:
            self._writes.pop(key, None)
        return restore, write.baseline

    def succeed(
        self,
        op_id: str,
        cache_key: str,
        entity_id: EntityId,
        field_name: str,
    ) -> None:
        key = (cache_key, entity_id, field_name)
        writes = self._writes.get(key)
        idx = _index_of(writes, op_id)
        if writes is None or idx is None:
            return
        del writes[: idx + 1]
        if not writes:
            self._writes.pop(key, None)

    def forget_entity(self, cache_key: str, entity_id: EntityId) -> None:
        """Drop every write on an entity (e.g., placeholder replaced by server id)."""
        for key in [k for k in self._writes if k[0] == cache_key and k[1] == entity_id]:
            self._writes.pop(key, None)

    def forget_collection(self, cache_key: str) -> None:
        for key in [k for k in self._writes if k[0] == cache_key]:
            self._writes.pop(key, None)

    def is_empty(self) -> bool:
        return not self._writes


def _index_of(writes: Optional[list[_Write]], op_id: str) -> Optional[int]:
    if not writes:
        return None
    for i, w in enumerate(writes):
        if w.op_id == op_id:
            return i
    return None
