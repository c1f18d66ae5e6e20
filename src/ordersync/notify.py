"""User-visible notifications (toasts) for mutation outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Protocol

from ordersync.errors import ConflictError, OrderSyncError, ValidationError
from ordersync.observability import get_logger
from ordersync.ops import OperationKind

logger = get_logger(__name__)

Variant = Literal["default", "destructive"]


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    description: Optional[str] = None
    variant: Variant = "default"
    field_errors: dict[str, str] = field(default_factory=dict)


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Default notifier: emits notifications as structured log events."""

    def notify(self, notification: Notification) -> None:
        log = logger.warning if notification.variant == "destructive" else logger.info
        log(
            "notification",
            title=notification.title,
            description=notification.description,
            field_errors=notification.field_errors or None,
        )


class CollectingNotifier:
    """Keeps notifications in memory (headless use and tests)."""

    def __init__(self) -> None:
        self.items: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.items.append(notification)

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.items if n.variant == "destructive"]

    def clear(self) -> None:
        self.items.clear()


_SUCCESS_TITLES: dict[OperationKind, str] = {
    OperationKind.CREATE: "{label} created",
    OperationKind.UPDATE: "{label} updated",
    OperationKind.DELETE: "{label} removed",
    OperationKind.REORDER: "Order updated",
    OperationKind.TOGGLE_ACTIVE: "{label} updated",
}

_FAILURE_TITLES: dict[OperationKind, str] = {
    OperationKind.CREATE: "Could not create {label}",
    OperationKind.UPDATE: "Could not update {label}",
    OperationKind.DELETE: "Could not remove {label}",
    OperationKind.REORDER: "Could not reorder {label} list",
    OperationKind.TOGGLE_ACTIVE: "Could not change {label} visibility",
}


def success_notification(kind: OperationKind, label: str) -> Notification:
    description = f"{label} list reordered." if kind is OperationKind.REORDER else None
    return Notification(title=_SUCCESS_TITLES[kind].format(label=label),
                        description=description)


def failure_notification(kind: OperationKind, label: str, exc: OrderSyncError) -> Notification:
    """Build the toast for a failed mutation; the change has already been reverted."""
    title = _FAILURE_TITLES[kind].format(label=label)

    if isinstance(exc, ValidationError):
        field_errors = exc.field_errors
        if field_errors:
            detail = "; ".join(f"{name}: {msg}" for name, msg in sorted(field_errors.items()))
            description = f"Invalid data ({detail}). The change was reverted."
        else:
            description = f"{exc}. The change was reverted."
        return Notification(title=title, description=description,
                            variant="destructive", field_errors=field_errors)

    if isinstance(exc, ConflictError):
        return Notification(
            title=title,
            description="The data changed on the server. Please refresh and try again.",
            variant="destructive",
        )

    return Notification(
        title=title,
        description=f"{exc}. The change was reverted; check the connection and try again.",
        variant="destructive",
    )
