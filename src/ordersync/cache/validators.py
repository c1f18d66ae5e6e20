"""Strict validation helpers for coordinator arguments."""

from __future__ import annotations

from typing import Any, Mapping

from ordersync.errors import InvalidArgumentError, InvalidStateError
from ordersync.models import ORDER_FIELD, EntityId

from .snapshot import CollectionSnapshot


def validate_loaded(snapshot: CollectionSnapshot | None, cache_key: str) -> CollectionSnapshot:
    if snapshot is None:
        raise InvalidStateError(
            "Collection is not loaded. Call load() first.",
            details={"cache_key": cache_key},
        )
    return snapshot


def validate_exists(snapshot: CollectionSnapshot, entity_id: EntityId, what: str) -> None:
    if not snapshot.has(entity_id):
        raise InvalidArgumentError(f"{what} does not exist: {entity_id}",
                                   details={"id": entity_id})


def validate_update_fields(fields: Mapping[str, Any]) -> None:
    if not isinstance(fields, Mapping) or not fields:
        raise InvalidArgumentError("update requires a non-empty mapping of fields")
    if "id" in fields:
        raise InvalidArgumentError("id is immutable and cannot be updated")
    if ORDER_FIELD in fields:
        raise InvalidArgumentError("order changes must go through reorder")


def validate_create_payload(payload: Mapping[str, Any]) -> None:
    if not isinstance(payload, Mapping):
        raise InvalidArgumentError("create payload must be a mapping")
    if "id" in payload:
        raise InvalidArgumentError("create payload must not carry an id")
