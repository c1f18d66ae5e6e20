"""Ordering rules for ordered collections."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from ordersync.errors import InvalidArgumentError
from ordersync.models import EntityId, OrderedEntity

OrderPair = tuple[EntityId, int]


def sort_by_order(entities: Iterable[OrderedEntity]) -> list[OrderedEntity]:
    """Stable sort by `order`; ties keep their current relative position."""
    return sorted(entities, key=lambda e: e.order)


def is_dense(entities: Sequence[OrderedEntity]) -> bool:
    """Return True if orders are exactly {0, ..., N-1}."""
    return sorted(e.order for e in entities) == list(range(len(entities)))


def next_order(entities: Sequence[OrderedEntity]) -> int:
    """Order for a newly created entity (append-at-end policy)."""
    return len(entities)


def normalize_ordering(ordering: Sequence[Any]) -> list[OrderPair]:
    """
    Normalize an ordering into (id, order) pairs.

    Accepts:
        - a sequence of ids: position becomes the order
        - a sequence of (id, order) tuples
        - a sequence of {"id": ..., "order": ...} mappings (wire format)
    """
    if isinstance(ordering, (str, bytes)):
        raise InvalidArgumentError("ordering must be a sequence, not a string")

    pairs: list[OrderPair] = []
    for position, item in enumerate(ordering):
        if isinstance(item, Mapping):
            if "id" not in item or "order" not in item:
                raise InvalidArgumentError(
                    "ordering entries must carry id and order",
                    details={"entry": dict(item)},
                )
            pairs.append((item["id"], _as_order(item["order"])))
        elif isinstance(item, tuple):
            if len(item) != 2:
                raise InvalidArgumentError("ordering tuples must be (id, order)")
            pairs.append((item[0], _as_order(item[1])))
        else:
            pairs.append((item, position))
    return pairs


def validate_complete_ordering(
    pairs: Sequence[OrderPair],
    current_ids: Iterable[EntityId],
) -> None:
    """
    Require a complete, dense mapping over the current collection.

    Raises:
        InvalidArgumentError: on unknown/missing/duplicate ids or when orders
            are not exactly {0, ..., N-1}.
    """
    expected = list(current_ids)
    ids = [entity_id for entity_id, _ in pairs]

    if len(set(ids)) != len(ids):
        raise InvalidArgumentError("ordering contains duplicate ids")

    id_set = set(ids)
    expected_set = set(expected)
    missing = [i for i in expected if i not in id_set]
    unknown = [i for i in ids if i not in expected_set]
    if missing or unknown:
        raise InvalidArgumentError(
            "ordering must cover exactly the ids of the collection",
            details={"missing": missing, "unknown": unknown},
        )

    orders = sorted(order for _, order in pairs)
    if orders != list(range(len(pairs))):
        raise InvalidArgumentError(
            "ordering must assign each of 0..N-1 exactly once",
            details={"orders": orders},
        )


def apply_orders(
    entities: Sequence[OrderedEntity],
    order_by_id: Mapping[EntityId, int],
) -> list[OrderedEntity]:
    """Rewrite orders from `order_by_id` (others untouched) and sort."""
    updated = [
        e.with_order(order_by_id[e.id]) if e.id in order_by_id else e
        for e in entities
    ]
    return sort_by_order(updated)


def move_to(ids: Sequence[EntityId], entity_id: EntityId, new_index: int) -> list[EntityId]:
    """Return ids with entity_id moved to new_index (clamped)."""
    if entity_id not in ids:
        raise InvalidArgumentError("unknown id", details={"id": entity_id})
    out = [i for i in ids if i != entity_id]
    new_index = max(0, min(new_index, len(out)))
    out.insert(new_index, entity_id)
    return out


def move_up(ids: Sequence[EntityId], entity_id: EntityId) -> list[EntityId]:
    """Swap entity_id with its predecessor; no-op for the first item."""
    if entity_id not in ids:
        raise InvalidArgumentError("unknown id", details={"id": entity_id})
    return move_to(ids, entity_id, list(ids).index(entity_id) - 1)


def move_down(ids: Sequence[EntityId], entity_id: EntityId) -> list[EntityId]:
    """Swap entity_id with its successor; no-op for the last item."""
    if entity_id not in ids:
        raise InvalidArgumentError("unknown id", details={"id": entity_id})
    return move_to(ids, entity_id, list(ids).index(entity_id) + 1)


def dense_pairs(ids: Sequence[EntityId]) -> list[OrderPair]:
    return [(entity_id, position) for position, entity_id in enumerate(ids)]


def to_wire_pairs(pairs: Sequence[OrderPair]) -> list[dict[str, Any]]:
    """Request body for `PUT /collection/reorder`."""
    return [{"id": entity_id, "order": order} for entity_id, order in pairs]


def _as_order(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgumentError("order must be a non-negative integer",
                                   details={"order": value})
    return value
