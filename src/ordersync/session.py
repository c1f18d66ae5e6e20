"""AdminSession: the cache, store and notifier shared by one admin session."""

from __future__ import annotations

from typing import Optional, Union

from ordersync.cache import QueryCache
from ordersync.config import Settings, get_settings
from ordersync.coordinator import MutationCoordinator
from ordersync.debounce import ReorderDebouncer
from ordersync.hooks import CollectionMutations
from ordersync.models import CollectionSpec, get_builtin
from ordersync.notify import LoggingNotifier, Notifier
from ordersync.observability import get_logger
from ordersync.remote import RemoteStore

logger = get_logger(__name__)


class AdminSession:
    """
    Owns the per-session state: one QueryCache, one RemoteStore, and one
    CollectionMutations per collection (created on first use).

    A store passed in by the caller is not closed by `aclose()`.
    """

    def __init__(
        self,
        store: Optional[RemoteStore] = None,
        *,
        cache: Optional[QueryCache] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_store = store is None
        self.store = store or RemoteStore(settings=self.settings)
        self.cache = cache or QueryCache()
        self.notifier: Notifier = notifier or LoggingNotifier()
        self._collections: dict[str, CollectionMutations] = {}

    def collection(self, spec: Union[CollectionSpec, str]) -> CollectionMutations:
        """
        Return the mutation surface for `spec` (a CollectionSpec or built-in name).

        Raises:
            KeyError: unknown built-in name.
        """
        if isinstance(spec, str):
            spec = get_builtin(spec)

        existing = self._collections.get(spec.cache_key)
        if existing is not None:
            return existing

        coordinator = MutationCoordinator(spec, self.store, self.cache, notifier=self.notifier)
        mutations = CollectionMutations(
            coordinator,
            debouncer=ReorderDebouncer(coordinator, delay=self.settings.debounce_seconds),
        )
        self._collections[spec.cache_key] = mutations
        logger.debug("collection_opened", collection=spec.name)
        return mutations

    async def aclose(self) -> None:
        for mutations in list(self._collections.values()):
            await mutations.close()
        self._collections.clear()
        self.cache.clear()
        if self._owns_store:
            await self.store.aclose()

    async def __aenter__(self) -> "AdminSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
