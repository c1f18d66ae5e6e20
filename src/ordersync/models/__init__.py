"""Public model exports for ordersync."""

from __future__ import annotations

from .collection import (
    ARTICLES,
    BUILTIN_COLLECTIONS,
    CUSTOM_CODES,
    FAQ,
    PHOTO_CAROUSEL,
    SERVICES,
    SPECIALTIES,
    TESTIMONIALS,
    CollectionSpec,
    get_builtin,
)
from .entity import ACTIVE_FIELD, ORDER_FIELD, EntityId, OrderedEntity
from .results import MutationResult, MutationStatus, ResultStatus

__all__ = [
    "OrderedEntity",
    "EntityId",
    "ORDER_FIELD",
    "ACTIVE_FIELD",
    "CollectionSpec",
    "TESTIMONIALS",
    "FAQ",
    "SERVICES",
    "PHOTO_CAROUSEL",
    "SPECIALTIES",
    "CUSTOM_CODES",
    "ARTICLES",
    "BUILTIN_COLLECTIONS",
    "get_builtin",
    "MutationResult",
    "MutationStatus",
    "ResultStatus",
]
