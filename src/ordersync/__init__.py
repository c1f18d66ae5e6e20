"""ordersync public API."""

from __future__ import annotations

from ordersync.cache import CacheEvent, QueryCache
from ordersync.config import Settings, get_settings, reset_settings
from ordersync.coordinator import MutationCoordinator
from ordersync.debounce import ReorderDebouncer
from ordersync.errors import (
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
from ordersync.gate import ItemProps, RenderIsolationGate, boundary_props
from ordersync.hooks import CollectionMutations, Mutation
from ordersync.models import (
    BUILTIN_COLLECTIONS,
    CollectionSpec,
    MutationResult,
    OrderedEntity,
    get_builtin,
)
from ordersync.notify import CollectingNotifier, LoggingNotifier, Notification
from ordersync.observability import configure_logging
from ordersync.ops import OperationKind, PendingOperation
from ordersync.remote import RemoteStore
from ordersync.session import AdminSession

__all__ = [
    # High-level
    "AdminSession",
    "CollectionMutations",
    "Mutation",
    "MutationCoordinator",
    "ReorderDebouncer",
    "RenderIsolationGate",
    "ItemProps",
    "boundary_props",
    # Cache / Store
    "QueryCache",
    "CacheEvent",
    "RemoteStore",
    # Models
    "OrderedEntity",
    "CollectionSpec",
    "BUILTIN_COLLECTIONS",
    "get_builtin",
    "MutationResult",
    "OperationKind",
    "PendingOperation",
    # Notifications / Config / Logging
    "Notification",
    "LoggingNotifier",
    "CollectingNotifier",
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    # Errors
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
