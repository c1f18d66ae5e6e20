from .ids import (
    PLACEHOLDER_PREFIX,
    new_op_id,
    new_placeholder_id,
    new_uuid,
)
from .time import elapsed_ms, now_utc

__all__ = [
    "new_uuid",
    "new_op_id",
    "new_placeholder_id",
    "PLACEHOLDER_PREFIX",
    "now_utc",
    "elapsed_ms",
]
