"""Pending operation model (one record per in-flight mutation)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ordersync.models import EntityId, OrderedEntity

from .kinds import OperationKind


@dataclass(slots=True)
class PendingOperation:
    """
    Ephemeral record of a mutation between its optimistic write and its settle.

    The prior values of the fields it wrote live in the coordinator's field
    ledger; this record names which fields those are (`touched`) and carries
    what the structural kinds need to undo themselves.
    """

    op_id: str
    seq: int
    kind: OperationKind
    cache_key: str
    started_at: datetime
    target_ids: list[EntityId] = field(default_factory=list)

    touched: dict[EntityId, tuple[str, ...]] = field(default_factory=dict)
    request: Optional[Any] = None

    # CREATE
    placeholder_id: Optional[str] = None
    # DELETE
    removed_entity: Optional[OrderedEntity] = None
    removed_index: Optional[int] = None

    sent: bool = False

    def validate_required_fields(self) -> None:
        """Validate required fields according to kind. Raises ValueError."""
        if not self.cache_key:
            raise ValueError("Missing required field: cache_key")

        if self.kind is OperationKind.CREATE:
            _require(self.placeholder_id, "placeholder_id")
            _require(self.request, "request")
            return

        if self.kind in (OperationKind.UPDATE, OperationKind.TOGGLE_ACTIVE):
            _require_targets(self.target_ids, exactly_one=True)
            if not self.touched:
                raise ValueError("Missing required field: touched")
            return

        if self.kind is OperationKind.DELETE:
            _require_targets(self.target_ids, exactly_one=True)
            _require(self.removed_entity, "removed_entity")
            _require(self.removed_index, "removed_index")
            return

        if self.kind is OperationKind.REORDER:
            _require(self.request, "request")
            return

        raise ValueError(f"Unsupported kind: {self.kind}")


def _require(value: object, field_name: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"Missing required field: {field_name}")


def _require_targets(target_ids: list[EntityId], *, exactly_one: bool) -> None:
    if not target_ids:
        raise ValueError("Missing required field: target_ids")
    if exactly_one and len(target_ids) != 1:
        raise ValueError("Exactly one target id is required")
