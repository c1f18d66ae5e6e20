"""Remote store exports for ordersync."""

from __future__ import annotations

from .store_client import RemoteStore

__all__ = ["RemoteStore"]
