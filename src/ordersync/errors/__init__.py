"""Public error exports for ordersync."""

from __future__ import annotations

from .exceptions import (
    ApiError,
    ConflictError,
    HttpErrorInfo,
    InvalidArgumentError,
    InvalidStateError,
    OrderSyncError,
    RemoteError,
    TransportError,
    ValidationError,
    map_http_error,
)

__all__ = [
    "OrderSyncError",
    "InvalidArgumentError",
    "InvalidStateError",
    "RemoteError",
    "ValidationError",
    "TransportError",
    "ApiError",
    "ConflictError",
    "HttpErrorInfo",
    "map_http_error",
]
