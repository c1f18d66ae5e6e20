"""Endpoint paths of the remote store (per collection)."""

from __future__ import annotations

from ordersync.models import EntityId

REORDER_SEGMENT: str = "reorder"
PUBLISH_SEGMENT: str = "publish"
UNPUBLISH_SEGMENT: str = "unpublish"


def collection_path(base: str) -> str:
    return base.rstrip("/")


def item_path(base: str, entity_id: EntityId) -> str:
    return f"{collection_path(base)}/{entity_id}"


def reorder_path(base: str) -> str:
    return f"{collection_path(base)}/{REORDER_SEGMENT}"


def publish_path(base: str, entity_id: EntityId, publish: bool) -> str:
    segment = PUBLISH_SEGMENT if publish else UNPUBLISH_SEGMENT
    return f"{item_path(base, entity_id)}/{segment}"
