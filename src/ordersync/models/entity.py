"""Data model for ordered entities."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Union

EntityId = Union[int, str]

ORDER_FIELD: str = "order"
ACTIVE_FIELD: str = "is_active"
ID_KEY: str = "id"


@dataclass(slots=True, frozen=True)
class OrderedEntity:
    """
    One record of a managed collection.

    Notes:
        - `order` is the collection-wide display position (dense after reorder).
        - `is_active` is serialized under the collection's alias
          (`isActive` or `isPublished`).
        - `payload` carries the collection-specific fields; the engine treats
          it as opaque. Entities are never mutated in place: every change goes
          through `with_fields` and produces a new object.
    """

    id: EntityId
    order: int
    is_active: bool = True
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        active_field: str = "isActive",
    ) -> OrderedEntity:
        """Build an entity from a store record. Raises ValueError on bad shape."""
        if not isinstance(data, Mapping):
            raise ValueError("entity record must be a mapping")

        entity_id = data.get(ID_KEY)
        if isinstance(entity_id, bool) or not isinstance(entity_id, (int, str)):
            raise ValueError("entity record is missing a valid id")
        if isinstance(entity_id, str) and not entity_id.strip():
            raise ValueError("entity record is missing a valid id")

        order = data.get(ORDER_FIELD, 0)
        if isinstance(order, bool) or not isinstance(order, int):
            raise ValueError(f"entity {entity_id!r} has a non-integer order")

        is_active = bool(data.get(active_field, True))
        payload = {
            k: v
            for k, v in data.items()
            if k not in (ID_KEY, ORDER_FIELD, active_field)
        }
        return cls(id=entity_id, order=order, is_active=is_active, payload=payload)

    def to_dict(self, *, active_field: str = "isActive") -> dict[str, Any]:
        data: dict[str, Any] = dict(self.payload)
        data[ID_KEY] = self.id
        data[ORDER_FIELD] = self.order
        data[active_field] = self.is_active
        return data

    def value_of(self, name: str) -> Any:
        if name == ORDER_FIELD:
            return self.order
        if name == ACTIVE_FIELD:
            return self.is_active
        return self.payload.get(name)

    def has_field(self, name: str) -> bool:
        return name in (ORDER_FIELD, ACTIVE_FIELD) or name in self.payload

    def with_fields(
        self,
        fields: Mapping[str, Any],
        *,
        removed: Optional[set[str]] = None,
    ) -> OrderedEntity:
        """
        Return a copy with `fields` merged in.

        `order` and `is_active` update the attributes; other keys go to the
        payload. Keys in `removed` are dropped from the payload (used when a
        rollback restores a field that did not exist before).
        """
        changes: dict[str, Any] = {}
        payload = dict(self.payload)
        for name, value in fields.items():
            if name == ID_KEY:
                continue
            if name == ORDER_FIELD:
                changes["order"] = int(value)
            elif name == ACTIVE_FIELD:
                changes["is_active"] = bool(value)
            else:
                payload[name] = value
        for name in removed or ():
            payload.pop(name, None)
        return replace(self, payload=payload, **changes)

    def with_order(self, order: int) -> OrderedEntity:
        return replace(self, order=order)

    def with_active(self, is_active: bool) -> OrderedEntity:
        return replace(self, is_active=is_active)
