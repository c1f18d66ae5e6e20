"""Public operation exports for ordersync."""

from __future__ import annotations

from .kinds import OperationKind
from .ledger import MISSING, FieldLedger
from .ordering import (
    OrderPair,
    apply_orders,
    dense_pairs,
    is_dense,
    move_down,
    move_to,
    move_up,
    next_order,
    normalize_ordering,
    sort_by_order,
    to_wire_pairs,
    validate_complete_ordering,
)
from .pending import PendingOperation

__all__ = [
    "OperationKind",
    "PendingOperation",
    "FieldLedger",
    "MISSING",
    "OrderPair",
    "apply_orders",
    "dense_pairs",
    "is_dense",
    "move_down",
    "move_to",
    "move_up",
    "next_order",
    "normalize_ordering",
    "sort_by_order",
    "to_wire_pairs",
    "validate_complete_ordering",
]
