"""View-facing mutation handles, one set per collection."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from ordersync.cache import Listener
from ordersync.coordinator import MutationCoordinator
from ordersync.debounce import ReorderDebouncer
from ordersync.gate import RenderIsolationGate
from ordersync.models import EntityId, MutationResult, MutationStatus, OrderedEntity

MutationFn = Callable[..., Awaitable[Optional[MutationResult]]]


class Mutation:
    """
    Wraps one coordinator operation with observable status.

    `status` is "pending" while any call is in flight, then reflects the last
    settled result. Local misuse errors (InvalidArgumentError,
    InvalidStateError) propagate from `mutate()` and leave the status as it
    was.
    """

    def __init__(self, name: str, fn: MutationFn) -> None:
        self.name = name
        self._fn = fn
        self._inflight = 0
        self._settled: MutationStatus = "idle"
        self.last_result: Optional[MutationResult] = None

    @property
    def status(self) -> MutationStatus:
        return "pending" if self._inflight else self._settled

    @property
    def is_pending(self) -> bool:
        return self._inflight > 0

    async def mutate(self, *args: Any, **kwargs: Any) -> Optional[MutationResult]:
        self._inflight += 1
        try:
            result = await self._fn(*args, **kwargs)
        finally:
            self._inflight -= 1

        if result is not None:
            self.last_result = result
            self._settled = result.status
        return result

    def reset(self) -> None:
        self._settled = "idle"
        self.last_result = None

    def __repr__(self) -> str:
        return f"Mutation(name={self.name!r}, status={self.status!r})"


class CollectionMutations:
    """
    Everything a list view needs for one collection.

    Views read `items`, subscribe to changes, call the `Mutation` handles and
    route drag/arrow gestures through `debouncer`. Views never write to the
    cache.

    `reorder` tracks direct reorders only. Debounced gestures settle through
    the results of `debouncer.flush()` and `close()`; while a window is open
    `is_pending()` is True but `reorder.status` stays where it was.
    """

    def __init__(
        self,
        coordinator: MutationCoordinator,
        *,
        debouncer: Optional[ReorderDebouncer] = None,
        gate: Optional[RenderIsolationGate] = None,
    ) -> None:
        self.coordinator = coordinator
        self.debouncer = debouncer or ReorderDebouncer(coordinator)
        self.gate = gate or RenderIsolationGate.for_collection(coordinator.spec)

        self.create = Mutation("create", coordinator.create)
        self.update = Mutation("update", coordinator.update)
        self.remove = Mutation("remove", coordinator.delete)
        self.reorder = Mutation("reorder", coordinator.reorder)
        self.toggle_active = Mutation("toggle_active", coordinator.toggle_active)

    @property
    def name(self) -> str:
        return self.coordinator.spec.name

    @property
    def items(self) -> tuple[OrderedEntity, ...]:
        return self.coordinator.entities

    async def load(self) -> tuple[OrderedEntity, ...]:
        return await self.coordinator.load()

    async def refresh(self) -> tuple[OrderedEntity, ...]:
        return await self.coordinator.refresh()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.coordinator.subscribe(listener)

    def is_pending(self, entity_id: Optional[EntityId] = None) -> bool:
        """True while a mutation (or one on entity_id) or a reorder window is open."""
        if entity_id is None and self.debouncer.pending:
            return True
        return self.coordinator.is_pending(entity_id)

    async def close(self) -> list[MutationResult]:
        """Send any open reorder window and await in-flight reorders."""
        return await self.debouncer.drain()
