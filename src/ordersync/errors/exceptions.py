"""Exception hierarchy and HTTP error mapping for ordersync."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class OrderSyncError(Exception):
    """
    Base exception for ordersync.

    Attributes:
        details: Optional structured information (e.g., HTTP status, entity id).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class InvalidArgumentError(OrderSyncError):
    """Raised when a caller passes arguments the engine cannot act on."""


class InvalidStateError(OrderSyncError):
    """Raised when the engine is used in an invalid state (e.g., not loaded)."""


class RemoteError(OrderSyncError):
    """Base for failures reported by (or on the way to) the remote store."""


class ValidationError(RemoteError):
    """Raised when the remote store rejects a payload (HTTP 400/422)."""

    @property
    def field_errors(self) -> dict[str, str]:
        """Field-level messages, when the store returned them."""
        errors = self.details.get("field_errors")
        return dict(errors) if isinstance(errors, dict) else {}


class TransportError(RemoteError):
    """Raised when network/timeout issues (or a failing server) prevent the request."""


class ApiError(TransportError):
    """Raised for unclassified store errors (5xx, unknown 4xx, bad payloads)."""


class ConflictError(RemoteError):
    """Raised when remote state diverged (HTTP 404/409/412)."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to ordersync exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> RemoteError:
    """
    Map an HTTP error to an ordersync exception.

    Policy:
        - 400/422 -> ValidationError
        - 404/409/412 -> ConflictError
        - otherwise (5xx included) -> ApiError
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code in (400, 422):
        return ValidationError(message, details=details, cause=cause)
    if info.status_code in (404, 409, 412):
        return ConflictError(message, details=details, cause=cause)
    return ApiError(message, details=details, cause=cause)
