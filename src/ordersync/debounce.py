"""ReorderDebouncer: coalesce bursts of reorder gestures into one store call."""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Sequence

from ordersync.config import get_settings
from ordersync.coordinator import MutationCoordinator
from ordersync.models import EntityId, MutationResult
from ordersync.observability import get_logger
from ordersync.ops import PendingOperation, move_down, move_to, move_up

logger = get_logger(__name__)


class ReorderDebouncer:
    """
    Fixed-delay coalescer in front of MutationCoordinator's reorder.

    Every `schedule()` writes the optimistic order immediately and restarts
    the timer; when the timer expires the latest ordering is sent once. The
    window owns a single PendingOperation created by its first schedule, so a
    failure rolls back to the state before the whole gesture.

    Must be used from inside a running event loop.
    """

    def __init__(
        self,
        coordinator: MutationCoordinator,
        *,
        delay: Optional[float] = None,
    ) -> None:
        if delay is None:
            delay = get_settings().debounce_seconds
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._coordinator = coordinator
        self._op: Optional[PendingOperation] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._schedules = 0
        self._inflight: set[asyncio.Task[MutationResult]] = set()

    @property
    def pending(self) -> bool:
        """True while a window is open (scheduled but not yet sent)."""
        return self._op is not None

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def schedule(self, ordering: Sequence[Any]) -> PendingOperation:
        """
        Apply `ordering` optimistically and (re)start the window timer.

        Raises:
            InvalidArgumentError: the ordering is incomplete or not dense.
                The open window (if any) is left as it was.
        """
        if self._op is None:
            self._op = self._coordinator.stage_reorder(ordering)
            self._schedules = 1
        else:
            self._coordinator.restage_reorder(self._op, ordering)
            self._schedules += 1
            logger.debug("reorder_coalesced", op_id=self._op.op_id, schedules=self._schedules)

        self._restart_timer()
        return self._op

    def move_up(self, entity_id: EntityId) -> Optional[PendingOperation]:
        return self._schedule_ids(move_up(self._coordinator.ids(), entity_id))

    def move_down(self, entity_id: EntityId) -> Optional[PendingOperation]:
        return self._schedule_ids(move_down(self._coordinator.ids(), entity_id))

    def move_to(self, entity_id: EntityId, new_index: int) -> Optional[PendingOperation]:
        return self._schedule_ids(move_to(self._coordinator.ids(), entity_id, new_index))

    async def flush(self) -> Optional[MutationResult]:
        """Send the open window now and await its result (None if no window)."""
        self._cancel_timer()
        task = self._send()
        if task is None:
            return None
        return await task

    def cancel(self) -> bool:
        """Close the open window without sending; its preview is rolled back."""
        self._cancel_timer()
        op = self._op
        if op is None:
            return False
        self._op = None
        self._coordinator.abandon(op)
        return True

    async def drain(self) -> list[MutationResult]:
        """Flush the open window and await every in-flight reorder."""
        await self.flush()
        if not self._inflight:
            return []
        return list(await asyncio.gather(*list(self._inflight)))

    # ----------------------------
    # Internals
    # ----------------------------
    def _schedule_ids(self, ids: list[EntityId]) -> Optional[PendingOperation]:
        if ids == self._coordinator.ids():
            return None
        return self.schedule(ids)

    def _restart_timer(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._send()

    def _send(self) -> Optional[asyncio.Task[MutationResult]]:
        op = self._op
        if op is None:
            return None
        self._op = None
        logger.debug("reorder_window_closed", op_id=op.op_id, schedules=self._schedules)

        task = asyncio.ensure_future(self._coordinator.commit(op))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task
