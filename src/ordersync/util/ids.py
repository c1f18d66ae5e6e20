from __future__ import annotations

import uuid

PLACEHOLDER_PREFIX: str = "tmp-"


def new_uuid() -> str:
    """Generate a UUID4 string."""
    return str(uuid.uuid4())


def new_op_id() -> str:
    """Generate a new PendingOperation ID."""
    return new_uuid()


def new_placeholder_id() -> str:
    """Generate a temporary id for an entity the store has not confirmed yet."""
    return PLACEHOLDER_PREFIX + new_uuid()
