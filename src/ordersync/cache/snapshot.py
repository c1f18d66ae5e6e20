"""Collection snapshot and id index for the local cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from ordersync.models import EntityId, OrderedEntity
from ordersync.ops.ordering import apply_orders, sort_by_order


@dataclass(slots=True)
class CollectionSnapshot:
    """
    In-memory state of one collection.

    Indexes:
        - entities (display sequence)
        - index_by_id (position of each id in `entities`)

    Entities are immutable; mutation helpers swap objects and keep the index
    consistent. The cache hands out clones, never its own instance.
    """

    entities: list[OrderedEntity] = field(default_factory=list)
    index_by_id: dict[EntityId, int] = field(default_factory=dict)

    @classmethod
    def from_entities(
        cls,
        entities: Iterable[OrderedEntity],
        *,
        sort: bool = True,
    ) -> CollectionSnapshot:
        items = list(entities)
        snap = cls(entities=sort_by_order(items) if sort else items)
        snap._reindex()
        return snap

    def clone(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            entities=list(self.entities),
            index_by_id=dict(self.index_by_id),
        )

    # ----------------------------
    # Query helpers
    # ----------------------------
    def __len__(self) -> int:
        return len(self.entities)

    def has(self, entity_id: EntityId) -> bool:
        return entity_id in self.index_by_id

    def get(self, entity_id: EntityId) -> OrderedEntity:
        return self.entities[self.index_by_id[entity_id]]

    def find(self, entity_id: EntityId) -> Optional[OrderedEntity]:
        idx = self.index_by_id.get(entity_id)
        return None if idx is None else self.entities[idx]

    def index_of(self, entity_id: EntityId) -> int:
        return self.index_by_id[entity_id]

    def ids(self) -> list[EntityId]:
        return [e.id for e in self.entities]

    # ----------------------------
    # Mutation helpers (keep index consistent)
    # ----------------------------
    def append(self, entity: OrderedEntity) -> None:
        self.entities.append(entity)
        self.index_by_id[entity.id] = len(self.entities) - 1

    def insert(self, position: int, entity: OrderedEntity) -> None:
        """Insert at position (clamped to the current length)."""
        position = max(0, min(position, len(self.entities)))
        self.entities.insert(position, entity)
        self._reindex()

    def remove(self, entity_id: EntityId) -> Optional[tuple[OrderedEntity, int]]:
        """Remove an entity; return (entity, former index) or None if absent."""
        idx = self.index_by_id.get(entity_id)
        if idx is None:
            return None
        entity = self.entities.pop(idx)
        self._reindex()
        return entity, idx

    def replace(self, entity: OrderedEntity, *, old_id: Optional[EntityId] = None) -> bool:
        """Swap the entity with id `old_id` (default: entity.id) in place."""
        key = entity.id if old_id is None else old_id
        idx = self.index_by_id.get(key)
        if idx is None:
            return False
        self.entities[idx] = entity
        if key != entity.id:
            self.index_by_id.pop(key, None)
            self.index_by_id[entity.id] = idx
        return True

    def apply_orders(self, order_by_id: Mapping[EntityId, int]) -> None:
        """Rewrite orders in one pass and re-sort the display sequence."""
        self.entities = apply_orders(self.entities, order_by_id)
        self._reindex()

    def resort(self) -> None:
        self.entities = sort_by_order(self.entities)
        self._reindex()

    def _reindex(self) -> None:
        self.index_by_id = {e.id: i for i, e in enumerate(self.entities)}
