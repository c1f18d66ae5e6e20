"""Per-item repaint decision for list views."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from ordersync.models import CollectionSpec, EntityId, OrderedEntity


@dataclass(slots=True, frozen=True)
class ItemProps:
    """What a list view hands to one rendered item."""

    entity: OrderedEntity
    index: int
    total: int

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index == self.total - 1


_Item = Union[ItemProps, OrderedEntity]


def boundary_props(index: int, total: int) -> dict[str, bool]:
    """Boundary controls (arrow buttons) for the item at `index`, computed outside the gate."""
    return {
        "is_first": index == 0,
        "is_last": index == total - 1,
        "can_move_up": index > 0,
        "can_move_down": 0 <= index < total - 1,
    }


class RenderIsolationGate:
    """
    Decides whether a list item must repaint.

    Only `is_active` and the semantic payload fields are compared; `order`
    and the position props (index, is_first, is_last, total) are ignored, so
    a reorder repaints nothing but items whose content changed. With
    `include_boundaries=True`, an item that gains or loses the first/last
    position also repaints.
    """

    def __init__(
        self,
        semantic_fields: Iterable[str] = (),
        *,
        include_boundaries: bool = False,
    ) -> None:
        self.semantic_fields = tuple(semantic_fields)
        self.include_boundaries = include_boundaries

    @classmethod
    def for_collection(cls, spec: CollectionSpec, *, include_boundaries: bool = False) -> "RenderIsolationGate":
        return cls(spec.semantic_fields, include_boundaries=include_boundaries)

    def should_repaint(self, prev: _Item, next: _Item) -> bool:
        prev_entity = _entity(prev)
        next_entity = _entity(next)

        if prev_entity is not next_entity and self._content_changed(prev_entity, next_entity):
            return True

        if self.include_boundaries and isinstance(prev, ItemProps) and isinstance(next, ItemProps):
            return prev.is_first != next.is_first or prev.is_last != next.is_last
        return False

    def items_to_repaint(
        self,
        prev_items: Sequence[OrderedEntity],
        next_items: Sequence[OrderedEntity],
    ) -> set[EntityId]:
        """Ids in `next_items` that must repaint. Ids not present before always do."""
        prev_total = len(prev_items)
        prev_by_id = {
            entity.id: ItemProps(entity, index, prev_total)
            for index, entity in enumerate(prev_items)
        }

        next_total = len(next_items)
        result: set[EntityId] = set()
        for index, entity in enumerate(next_items):
            before = prev_by_id.get(entity.id)
            if before is None or self.should_repaint(before, ItemProps(entity, index, next_total)):
                result.add(entity.id)
        return result

    def _content_changed(self, prev: OrderedEntity, next: OrderedEntity) -> bool:
        if prev.id != next.id or prev.is_active != next.is_active:
            return True
        fields = self.semantic_fields or set(prev.payload) | set(next.payload)
        return any(prev.payload.get(name) != next.payload.get(name) for name in fields)


def _entity(item: _Item) -> OrderedEntity:
    return item.entity if isinstance(item, ItemProps) else item
