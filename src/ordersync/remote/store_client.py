"""HTTP client for the remote store (internal use only)."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import httpx

from ordersync.config import Settings, get_settings
from ordersync.errors import (
    ApiError,
    HttpErrorInfo,
    InvalidArgumentError,
    TransportError,
    map_http_error,
)
from ordersync.models import EntityId
from ordersync.observability import get_logger

from .endpoints import collection_path, item_path, publish_path, reorder_path

logger = get_logger(__name__)


class RemoteStore:
    """
    Async JSON client for per-collection CRUD plus bulk reorder.

    Notes:
        - The underlying `httpx.AsyncClient` is NOT exposed.
        - No automatic retry: a failed call is reported once and the user
          re-issues the action.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        update_method: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self._update_method = _check_update_method(update_method or settings.update_method)
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_client(
        cls,
        client: httpx.AsyncClient,
        *,
        update_method: str = "PUT",
    ) -> "RemoteStore":
        """Create a store over a pre-built client (useful for tests)."""
        obj = cls.__new__(cls)
        obj._update_method = _check_update_method(update_method)
        obj._client = client
        return obj

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ----------------------------
    # Public API
    # ----------------------------
    async def fetch_all(self, base: str) -> list[dict[str, Any]]:
        data = await self._request("GET", collection_path(base))
        if not isinstance(data, list):
            raise ApiError("Store returned a non-array collection", details={"path": base})
        return data

    async def create(self, base: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", collection_path(base), json=dict(payload))
        return _require_object(data, base)

    async def update(
        self,
        base: str,
        entity_id: EntityId,
        fields: Mapping[str, Any],
    ) -> Optional[dict[str, Any]]:
        data = await self._request(self._update_method, item_path(base, entity_id),
                                   json=dict(fields))
        return data if isinstance(data, dict) else None

    async def delete(self, base: str, entity_id: EntityId) -> None:
        await self._request("DELETE", item_path(base, entity_id))

    async def reorder(
        self,
        base: str,
        items: Sequence[Mapping[str, Any]],
    ) -> Optional[list[dict[str, Any]]]:
        data = await self._request("PUT", reorder_path(base), json=[dict(i) for i in items])
        return data if isinstance(data, list) else None

    async def set_published(
        self,
        base: str,
        entity_id: EntityId,
        publish: bool,
    ) -> Optional[dict[str, Any]]:
        data = await self._request("POST", publish_path(base, entity_id, publish))
        return data if isinstance(data, dict) else None

    # ----------------------------
    # Internals
    # ----------------------------
    async def _request(self, method: str, url: str, *, json: Any = None) -> Any:
        try:
            if json is None:
                response = await self._client.request(method, url)
            else:
                response = await self._client.request(method, url, json=json)
        except httpx.TimeoutException as exc:
            raise TransportError(
                "Request timed out",
                details={"method": method, "url": url},
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                "Network error",
                details={"method": method, "url": url},
                cause=exc,
            ) from exc

        if response.is_error:
            info = _response_to_info(response)
            logger.info(
                "store_request_failed",
                method=method,
                url=url,
                status_code=info.status_code,
            )
            raise map_http_error(info)

        return _json_or_none(response)


def _check_update_method(method: str) -> str:
    upper = method.upper()
    if upper not in ("PUT", "PATCH"):
        raise InvalidArgumentError("update_method must be PUT or PATCH",
                                   details={"update_method": method})
    return upper


def _require_object(data: Any, base: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ApiError("Store returned a non-object entity", details={"path": base})
    return data


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _response_to_info(response: httpx.Response) -> HttpErrorInfo:
    message = None
    details: dict[str, Any] = {}

    payload = _json_or_none(response)
    if isinstance(payload, dict):
        for key in ("error", "message"):
            if isinstance(payload.get(key), str):
                message = payload[key]
                break
        field_errors = _field_errors(payload)
        if field_errors:
            details["field_errors"] = field_errors
    elif response.text:
        message = response.text[:500]

    return HttpErrorInfo(
        status_code=response.status_code,
        reason=response.reason_phrase or None,
        message=message,
        details=details or None,
    )


def _field_errors(payload: dict[str, Any]) -> dict[str, str]:
    """
    Extract field-level messages.

    Accepted shapes:
        - {"errors": [{"path": ["name"], "message": "..."}]}
        - {"issues": [...same...]}
        - {"fields": {"name": "..."}}
    """
    out: dict[str, str] = {}
    fields = payload.get("fields")
    if isinstance(fields, dict):
        for name, msg in fields.items():
            out[str(name)] = str(msg)

    for key in ("errors", "issues"):
        entries = payload.get(key)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            path = entry.get("path")
            if isinstance(path, list) and path:
                name = ".".join(str(p) for p in path)
            elif isinstance(path, str) and path:
                name = path
            else:
                continue
            out[name] = str(entry.get("message", "invalid"))
    return out
