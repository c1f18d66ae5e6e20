"""Static descriptions of the collections managed by the admin panel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .entity import ACTIVE_FIELD


@dataclass(slots=True, frozen=True)
class CollectionSpec:
    """
    Describes one managed collection.

    Attributes:
        name: Short collection name (used in logs).
        admin_path: Admin endpoint; also the cache key of the collection.
        label: Human label used in notifications.
        public_paths: Public cache keys to invalidate after a successful write.
        active_field: Wire name of the visibility flag.
        semantic_fields: Payload fields the render gate compares. Empty means
            "every payload field".
        has_publish_endpoints: Whether `{id}/publish` and `{id}/unpublish`
            exist and toggle_active should use them.
        active_default: Visibility of a newly created entity when the payload
            does not set it.
    """

    name: str
    admin_path: str
    label: str
    public_paths: tuple[str, ...] = ()
    active_field: str = "isActive"
    semantic_fields: tuple[str, ...] = ()
    has_publish_endpoints: bool = False
    active_default: bool = True

    @property
    def cache_key(self) -> str:
        return self.admin_path

    def to_wire(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Translate engine field names to the store's names."""
        wire: dict[str, Any] = {}
        for name, value in fields.items():
            if name == ACTIVE_FIELD:
                wire[self.active_field] = value
            else:
                wire[name] = value
        return wire

    def from_wire(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Translate store field names to engine names."""
        out: dict[str, Any] = {}
        for name, value in fields.items():
            if name == self.active_field:
                out[ACTIVE_FIELD] = value
            else:
                out[name] = value
        return out


TESTIMONIALS = CollectionSpec(
    name="testimonials",
    admin_path="/api/admin/testimonials",
    label="Testimonial",
    public_paths=("/api/testimonials",),
    semantic_fields=("name", "service", "testimonial", "rating", "photo"),
)

FAQ = CollectionSpec(
    name="faq",
    admin_path="/api/admin/faq",
    label="FAQ item",
    public_paths=("/api/faq",),
    semantic_fields=("question", "answer"),
)

SERVICES = CollectionSpec(
    name="services",
    admin_path="/api/admin/services",
    label="Service",
    public_paths=("/api/services",),
    semantic_fields=(
        "title",
        "description",
        "icon",
        "gradient",
        "price",
        "duration",
        "showPrice",
        "showDuration",
    ),
)

PHOTO_CAROUSEL = CollectionSpec(
    name="photo-carousel",
    admin_path="/api/admin/photo-carousel",
    label="Photo",
    public_paths=("/api/photo-carousel",),
    semantic_fields=("title", "description", "imageUrl", "showText"),
)

SPECIALTIES = CollectionSpec(
    name="specialties",
    admin_path="/api/admin/specialties",
    label="Specialty",
    public_paths=("/api/specialties",),
    semantic_fields=("title", "description", "icon", "iconColor"),
)

CUSTOM_CODES = CollectionSpec(
    name="custom-codes",
    admin_path="/api/admin/custom-codes",
    label="Custom code",
    semantic_fields=("name", "code", "location"),
)

ARTICLES = CollectionSpec(
    name="articles",
    admin_path="/api/admin/articles",
    label="Article",
    public_paths=("/api/articles", "/api/articles/featured"),
    active_field="isPublished",
    semantic_fields=(
        "title",
        "subtitle",
        "badge",
        "description",
        "cardImage",
        "author",
        "category",
        "isFeatured",
    ),
    has_publish_endpoints=True,
    active_default=False,
)

BUILTIN_COLLECTIONS: tuple[CollectionSpec, ...] = (
    TESTIMONIALS,
    FAQ,
    SERVICES,
    PHOTO_CAROUSEL,
    SPECIALTIES,
    CUSTOM_CODES,
    ARTICLES,
)


def get_builtin(name: str) -> CollectionSpec:
    """Return the built-in spec named `name`. Raises KeyError if unknown."""
    for spec in BUILTIN_COLLECTIONS:
        if spec.name == name:
            return spec
    raise KeyError(name)


__all__ = [
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
]
