"""Result models for coordinator mutations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from .entity import EntityId, OrderedEntity

MutationStatus = Literal["idle", "pending", "success", "error"]
ResultStatus = Literal["success", "error"]


@dataclass(slots=True)
class MutationResult:
    """Outcome of one coordinator operation, as seen by the initiating view."""

    op_id: str
    kind: str
    status: ResultStatus
    target_ids: list[EntityId] = field(default_factory=list)

    entity: Optional[OrderedEntity] = None
    rolled_back: bool = False

    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"
