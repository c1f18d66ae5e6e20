"""Operation kinds handled by the mutation coordinator."""

from __future__ import annotations

from enum import Enum


class OperationKind(str, Enum):
    """Supported mutation kinds."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REORDER = "REORDER"
    TOGGLE_ACTIVE = "TOGGLE_ACTIVE"
