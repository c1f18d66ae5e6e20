"""MutationCoordinator: optimistic writes against the cache, settled by the store."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from ordersync.cache import CollectionSnapshot, Listener, QueryCache
from ordersync.cache.validators import (
    validate_create_payload,
    validate_exists,
    validate_loaded,
    validate_update_fields,
)
from ordersync.errors import (
    ApiError,
    InvalidArgumentError,
    InvalidStateError,
    OrderSyncError,
)
from ordersync.models import (
    ACTIVE_FIELD,
    ORDER_FIELD,
    CollectionSpec,
    EntityId,
    MutationResult,
    OrderedEntity,
)
from ordersync.notify import (
    LoggingNotifier,
    Notifier,
    failure_notification,
    success_notification,
)
from ordersync.observability import get_logger
from ordersync.ops import (
    MISSING,
    FieldLedger,
    OperationKind,
    PendingOperation,
    dense_pairs,
    move_down,
    move_to,
    move_up,
    next_order,
    normalize_ordering,
    to_wire_pairs,
    validate_complete_ordering,
)
from ordersync.remote import RemoteStore
from ordersync.util.ids import new_op_id, new_placeholder_id
from ordersync.util.time import elapsed_ms, now_utc

logger = get_logger(__name__)

_Changes = dict[EntityId, dict[str, Any]]


class MutationCoordinator:
    """
    Optimistic create/update/delete/reorder/toggle for one collection.

    Protocol (every operation):
        1. Validate arguments (raises InvalidArgumentError/InvalidStateError).
        2. Record a PendingOperation and write the cache synchronously.
        3. Await the store call.
        4. Success: keep the optimistic state (create swaps in the confirmed
           entity) and invalidate the public cache keys.
           Failure: undo only this operation's delta, notify, and return an
           error MutationResult. Remote errors never propagate.
    """

    def __init__(
        self,
        spec: CollectionSpec,
        store: RemoteStore,
        cache: QueryCache,
        *,
        notifier: Optional[Notifier] = None,
        ledger: Optional[FieldLedger] = None,
    ) -> None:
        self.spec = spec
        self._store = store
        self._cache = cache
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._ledger = ledger or FieldLedger()
        self._pending: dict[str, PendingOperation] = {}
        self._seq = 0
        self._loading: Optional[asyncio.Future[tuple[OrderedEntity, ...]]] = None
        self._placeholders: set[EntityId] = set()

    # ----------------------------
    # Read APIs
    # ----------------------------
    @property
    def cache_key(self) -> str:
        return self.spec.cache_key

    @property
    def is_loaded(self) -> bool:
        return self._cache.has(self.cache_key)

    @property
    def entities(self) -> tuple[OrderedEntity, ...]:
        """Current (possibly optimistic) collection; empty before load()."""
        return self._cache.get_entities(self.cache_key) or ()

    def ids(self) -> list[EntityId]:
        return [e.id for e in self.entities]

    def get(self, entity_id: EntityId) -> OrderedEntity:
        snap = self._snapshot()
        validate_exists(snap, entity_id, "Entity")
        return snap.get(entity_id)

    def list_pending(self) -> list[PendingOperation]:
        return sorted(self._pending.values(), key=lambda op: op.seq)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Listen for cache events on this collection; returns an unsubscribe callable."""
        return self._cache.subscribe(self.cache_key, listener)

    def is_pending(self, entity_id: Optional[EntityId] = None) -> bool:
        """True if any operation (or one targeting entity_id) is in flight."""
        if entity_id is None:
            return bool(self._pending)
        return any(entity_id in op.target_ids for op in self._pending.values())

    # ----------------------------
    # Loading
    # ----------------------------
    async def load(self, *, force: bool = False) -> tuple[OrderedEntity, ...]:
        """
        Fetch the collection on first use.

        A stale (invalidated) collection is re-fetched, unless operations are
        pending: their optimistic state would be discarded by a fetch.
        Concurrent callers share one request. Store errors propagate.
        """
        if self.is_loaded and not force:
            if not self._cache.is_stale(self.cache_key):
                return self.entities
            if self._pending:
                logger.info("load_deferred_pending_ops", collection=self.spec.name,
                            pending=len(self._pending))
                return self.entities

        task = self._loading
        if task is None:
            task = asyncio.ensure_future(self._fetch())
            self._loading = task
            task.add_done_callback(self._clear_loading)
        return await task

    async def refresh(self) -> tuple[OrderedEntity, ...]:
        """
        Re-fetch and replace the snapshot.

        Raises:
            InvalidStateError: if operations are pending.
        """
        if self._pending:
            raise InvalidStateError(
                "Pending operations exist. Wait for them to settle first.",
                details={"pending": len(self._pending)},
            )
        return await self.load(force=True)

    # ----------------------------
    # Mutations
    # ----------------------------
    async def create(self, payload: Mapping[str, Any]) -> MutationResult:
        """Append a new entity at the end (order = current length)."""
        snap = self._snapshot()
        validate_create_payload(payload)
        if self._staged_reorder() is not None:
            raise InvalidStateError("Cannot create while a reorder is being staged")

        fields = self.spec.from_wire(payload)
        fields.pop(ORDER_FIELD, None)
        is_active = bool(fields.pop(ACTIVE_FIELD, self.spec.active_default))
        placeholder = OrderedEntity(
            id=new_placeholder_id(),
            order=next_order(snap.entities),
            is_active=is_active,
            payload=fields,
        )
        body = placeholder.to_dict(active_field=self.spec.active_field)
        body.pop("id")

        op = self._begin(
            OperationKind.CREATE,
            [placeholder.id],
            placeholder_id=str(placeholder.id),
            request=body,
        )
        self._placeholders.add(placeholder.id)
        self._cache.update(self.cache_key, lambda s: s.append(placeholder))

        def undo() -> None:
            self._remove_if_present(placeholder.id)
            self._placeholders.discard(placeholder.id)

        def confirm(data: Any) -> OrderedEntity:
            entity = self._entity_from_store(data)
            self._cache.update(self.cache_key, lambda s: _swap_in(s, placeholder.id, entity))
            self._ledger.forget_entity(self.cache_key, placeholder.id)
            self._placeholders.discard(placeholder.id)
            return entity

        return await self._run(
            op,
            lambda: self._store.create(self.spec.admin_path, body),
            undo=undo,
            confirm=confirm,
        )

    async def update(self, entity_id: EntityId, fields: Mapping[str, Any]) -> MutationResult:
        """Merge `fields` (store names) into one entity."""
        snap = self._snapshot()
        validate_exists(snap, entity_id, "Entity")
        self._require_confirmed(entity_id)
        validate_update_fields(fields)

        changes = self.spec.from_wire(fields)
        request = self.spec.to_wire(changes)
        op = self._begin(OperationKind.UPDATE, [entity_id], request=request,
                         touched={entity_id: tuple(changes)})
        self._write_fields(op, {entity_id: changes})

        return await self._run(
            op,
            lambda: self._store.update(self.spec.admin_path, entity_id, request),
            undo=lambda: self._rollback_fields(op),
            confirm=lambda _data: self._current(entity_id),
        )

    async def toggle_active(
        self,
        entity_id: EntityId,
        value: Optional[bool] = None,
    ) -> MutationResult:
        """
        Set (or flip, when value is None) the visibility flag.

        The optimistic value stays authoritative after success; the response
        body is not reconciled.
        """
        snap = self._snapshot()
        validate_exists(snap, entity_id, "Entity")
        self._require_confirmed(entity_id)

        new_value = (not snap.get(entity_id).is_active) if value is None else bool(value)
        request = {self.spec.active_field: new_value}
        op = self._begin(OperationKind.TOGGLE_ACTIVE, [entity_id], request=request,
                         touched={entity_id: (ACTIVE_FIELD,)})
        self._write_fields(op, {entity_id: {ACTIVE_FIELD: new_value}})

        if self.spec.has_publish_endpoints:
            def call() -> Awaitable[Any]:
                return self._store.set_published(self.spec.admin_path, entity_id, new_value)
        else:
            def call() -> Awaitable[Any]:
                return self._store.update(self.spec.admin_path, entity_id, request)

        return await self._run(
            op,
            call,
            undo=lambda: self._rollback_fields(op),
            confirm=lambda _data: self._current(entity_id),
        )

    async def delete(self, entity_id: EntityId) -> MutationResult:
        """Remove one entity. Remaining orders are not renumbered."""
        snap = self._snapshot()
        validate_exists(snap, entity_id, "Entity")
        self._require_confirmed(entity_id)

        op = self._begin(
            OperationKind.DELETE,
            [entity_id],
            removed_entity=snap.get(entity_id),
            removed_index=snap.index_of(entity_id),
        )
        self._cache.update(self.cache_key, lambda s: s.remove(entity_id))

        def undo() -> None:
            removed = op.removed_entity
            position = op.removed_index

            def reinsert(s: CollectionSnapshot) -> None:
                if not s.has(entity_id):
                    s.insert(position, removed)

            self._cache.update(self.cache_key, reinsert)

        def confirm(_data: Any) -> None:
            self._ledger.forget_entity(self.cache_key, entity_id)
            return None

        return await self._run(
            op,
            lambda: self._store.delete(self.spec.admin_path, entity_id),
            undo=undo,
            confirm=confirm,
        )

    async def reorder(self, ordering: Sequence[Any]) -> MutationResult:
        """
        Apply a complete ordering (ids, (id, order) pairs, or wire dicts).

        Raises:
            InvalidArgumentError: if the ordering does not cover the collection
                exactly or its orders are not 0..N-1.
        """
        op = self.stage_reorder(ordering)
        return await self.commit(op)

    async def move_up(self, entity_id: EntityId) -> Optional[MutationResult]:
        """Swap with the previous item. Returns None when already first."""
        return await self._reorder_ids(move_up(self.ids(), entity_id))

    async def move_down(self, entity_id: EntityId) -> Optional[MutationResult]:
        """Swap with the next item. Returns None when already last."""
        return await self._reorder_ids(move_down(self.ids(), entity_id))

    async def move_to(self, entity_id: EntityId, new_index: int) -> Optional[MutationResult]:
        return await self._reorder_ids(move_to(self.ids(), entity_id, new_index))

    # ----------------------------
    # Staged reorder (used by ReorderDebouncer)
    # ----------------------------
    def stage_reorder(self, ordering: Sequence[Any]) -> PendingOperation:
        """Validate, record and optimistically apply an ordering without sending it."""
        snap = self._snapshot()
        pairs = self._validated_pairs(snap, ordering)

        op = self._begin(
            OperationKind.REORDER,
            [entity_id for entity_id, _ in pairs],
            request=to_wire_pairs(pairs),
            touched={entity_id: (ORDER_FIELD,) for entity_id, _ in pairs},
        )
        self._write_fields(op, {entity_id: {ORDER_FIELD: order} for entity_id, order in pairs})
        return op

    def restage_reorder(self, op: PendingOperation, ordering: Sequence[Any]) -> None:
        """Replace the ordering of a staged (not yet sent) reorder."""
        self._require_staged(op)
        snap = self._snapshot()
        pairs = self._validated_pairs(snap, ordering)

        op.request = to_wire_pairs(pairs)
        op.target_ids = [entity_id for entity_id, _ in pairs]
        for entity_id, _ in pairs:
            op.touched.setdefault(entity_id, (ORDER_FIELD,))
        self._write_fields(op, {entity_id: {ORDER_FIELD: order} for entity_id, order in pairs})

    async def commit(self, op: PendingOperation) -> MutationResult:
        """Send a staged reorder to the store and settle it."""
        self._require_staged(op)
        self._reconcile_staged(op)
        op.sent = True
        request = list(op.request)
        return await self._run(
            op,
            lambda: self._store.reorder(self.spec.admin_path, request),
            undo=lambda: self._rollback_fields(op),
            confirm=lambda _data: None,
        )

    def abandon(self, op: PendingOperation) -> None:
        """Drop a staged reorder: undo its optimistic write, send nothing."""
        self._require_staged(op)
        self._rollback_fields(op)
        self._pending.pop(op.op_id, None)
        logger.info("mutation_abandoned", collection=self.spec.name, op_id=op.op_id)

    # ----------------------------
    # Internals
    # ----------------------------
    def _snapshot(self) -> CollectionSnapshot:
        return validate_loaded(self._cache.get_snapshot(self.cache_key), self.cache_key)

    def _current(self, entity_id: EntityId) -> Optional[OrderedEntity]:
        snap = self._cache.get_snapshot(self.cache_key)
        return None if snap is None else snap.find(entity_id)

    def _begin(
        self,
        kind: OperationKind,
        target_ids: list[EntityId],
        **fields: Any,
    ) -> PendingOperation:
        self._seq += 1
        op = PendingOperation(
            op_id=new_op_id(),
            seq=self._seq,
            kind=kind,
            cache_key=self.cache_key,
            started_at=now_utc(),
            target_ids=target_ids,
            **fields,
        )
        try:
            op.validate_required_fields()
        except ValueError as exc:
            raise InvalidArgumentError(
                "Invalid operation: missing required fields",
                details={"op_id": op.op_id, "kind": kind.value},
                cause=exc,
            ) from exc

        self._pending[op.op_id] = op
        logger.debug(
            "mutation_started",
            collection=self.spec.name,
            op_id=op.op_id,
            kind=kind.value,
            targets=len(target_ids),
        )
        return op

    def _write_fields(self, op: PendingOperation, changes: _Changes) -> None:
        """Record baselines in the ledger, then write all changes in one cache swap."""
        snap = self._snapshot()
        for entity_id, fields in changes.items():
            entity = snap.get(entity_id)
            for name in fields:
                baseline = entity.value_of(name) if entity.has_field(name) else MISSING
                self._ledger.record(op.op_id, self.cache_key, entity_id, name, baseline)

        resort = any(ORDER_FIELD in fields for fields in changes.values())

        def mutate(s: CollectionSnapshot) -> None:
            for entity_id, fields in changes.items():
                entity = s.find(entity_id)
                if entity is not None:
                    s.replace(entity.with_fields(fields))
            if resort:
                s.resort()

        self._cache.update(self.cache_key, mutate)

    def _rollback_fields(self, op: PendingOperation) -> None:
        """Undo this op's delta; fields a later op wrote are left alone."""
        restores: _Changes = {}
        removals: dict[EntityId, set[str]] = {}
        for entity_id, names in op.touched.items():
            for name in names:
                restore, baseline = self._ledger.fail(op.op_id, self.cache_key, entity_id, name)
                if not restore:
                    continue
                if baseline is MISSING:
                    removals.setdefault(entity_id, set()).add(name)
                else:
                    restores.setdefault(entity_id, {})[name] = baseline

        if not restores and not removals:
            return

        resort = any(ORDER_FIELD in fields for fields in restores.values())

        def mutate(s: CollectionSnapshot) -> None:
            for entity_id in set(restores) | set(removals):
                entity = s.find(entity_id)
                if entity is None:
                    continue
                s.replace(entity.with_fields(restores.get(entity_id, {}),
                                             removed=removals.get(entity_id)))
            if resort:
                s.resort()

        self._cache.update(self.cache_key, mutate)

    def _commit_fields(self, op: PendingOperation) -> None:
        for entity_id, names in op.touched.items():
            for name in names:
                self._ledger.succeed(op.op_id, self.cache_key, entity_id, name)

    async def _run(
        self,
        op: PendingOperation,
        call: Callable[[], Awaitable[Any]],
        *,
        undo: Callable[[], None],
        confirm: Callable[[Any], Optional[OrderedEntity]],
    ) -> MutationResult:
        try:
            data = await call()
            entity = confirm(data)
        except OrderSyncError as exc:
            undo()
            return self._finish_failed(op, exc)
        except BaseException:
            undo()
            self._pending.pop(op.op_id, None)
            raise
        return self._finish_ok(op, entity)

    def _finish_ok(self, op: PendingOperation, entity: Optional[OrderedEntity]) -> MutationResult:
        target_ids = list(op.target_ids)
        if op.kind is OperationKind.CREATE and entity is not None:
            target_ids = [entity.id]
        self._commit_fields(op)
        self._pending.pop(op.op_id, None)

        for path in self.spec.public_paths:
            self._cache.invalidate(path)

        logger.info(
            "mutation_succeeded",
            collection=self.spec.name,
            op_id=op.op_id,
            kind=op.kind.value,
            elapsed_ms=round(elapsed_ms(op.started_at), 1),
        )
        self._notifier.notify(success_notification(op.kind, self.spec.label))

        return MutationResult(
            op_id=op.op_id,
            kind=op.kind.value,
            status="success",
            target_ids=target_ids,
            entity=entity,
        )

    def _finish_failed(self, op: PendingOperation, exc: OrderSyncError) -> MutationResult:
        self._pending.pop(op.op_id, None)

        logger.warning(
            "mutation_rolled_back",
            collection=self.spec.name,
            op_id=op.op_id,
            kind=op.kind.value,
            error_type=exc.__class__.__name__,
            error=str(exc),
        )
        self._notifier.notify(failure_notification(op.kind, self.spec.label, exc))

        return MutationResult(
            op_id=op.op_id,
            kind=op.kind.value,
            status="error",
            target_ids=list(op.target_ids),
            rolled_back=True,
            error_type=exc.__class__.__name__,
            error_message=str(exc),
            error_details=dict(exc.details) or None,
        )

    async def _fetch(self) -> tuple[OrderedEntity, ...]:
        seq = self._seq
        data = await self._store.fetch_all(self.spec.admin_path)
        entities = [self._entity_from_store(item) for item in data]
        if self._seq != seq and self.is_loaded:
            # Operations started during the fetch; the read predates them.
            self._cache.invalidate(self.cache_key)
            logger.info("load_discarded_stale_read", collection=self.spec.name,
                        started=self._seq - seq, pending=len(self._pending))
            return self.entities
        self._ledger.forget_collection(self.cache_key)
        loaded = self._cache.set_entities(self.cache_key, entities)
        logger.info("collection_loaded", collection=self.spec.name, count=len(loaded))
        return loaded

    def _clear_loading(self, task: asyncio.Future) -> None:
        if self._loading is task:
            self._loading = None

    def _entity_from_store(self, data: Any) -> OrderedEntity:
        try:
            return OrderedEntity.from_dict(data, active_field=self.spec.active_field)
        except ValueError as exc:
            raise ApiError(
                "Store returned an invalid entity",
                details={"collection": self.spec.name},
                cause=exc,
            ) from exc

    def _remove_if_present(self, entity_id: EntityId) -> None:
        self._cache.update(self.cache_key, lambda s: s.remove(entity_id))
        self._ledger.forget_entity(self.cache_key, entity_id)

    def _require_confirmed(self, entity_id: EntityId) -> None:
        if entity_id in self._placeholders:
            raise InvalidStateError(
                "Entity is not confirmed by the store yet",
                details={"id": entity_id},
            )

    def _staged_reorder(self) -> Optional[PendingOperation]:
        for op in self._pending.values():
            if op.kind is OperationKind.REORDER and not op.sent:
                return op
        return None

    def _reconcile_staged(self, op: PendingOperation) -> None:
        """Rebuild a staged ordering whose ids no longer match the collection."""
        current = self.ids()
        staged = [item["id"] for item in sorted(op.request, key=lambda item: item["order"])]
        if len(staged) == len(current) and set(staged) == set(current):
            return

        present = set(current)
        ids = [entity_id for entity_id in staged if entity_id in present]
        kept = set(ids)
        ids.extend(entity_id for entity_id in current if entity_id not in kept)
        logger.info("reorder_restaged", collection=self.spec.name, op_id=op.op_id,
                    dropped=len(staged) - len(kept), added=len(ids) - len(kept))
        self.restage_reorder(op, ids)

    def _require_staged(self, op: PendingOperation) -> None:
        if op.kind is not OperationKind.REORDER:
            raise InvalidArgumentError("Only reorder operations can be staged",
                                       details={"kind": op.kind.value})
        if op.op_id not in self._pending or op.sent:
            raise InvalidStateError("Reorder is no longer staged", details={"op_id": op.op_id})

    def _validated_pairs(
        self,
        snap: CollectionSnapshot,
        ordering: Sequence[Any],
    ) -> list[tuple[EntityId, int]]:
        pairs = normalize_ordering(ordering)
        validate_complete_ordering(pairs, snap.ids())
        if any(e.id in self._placeholders for e in snap.entities):
            raise InvalidStateError("Cannot reorder while a create is unconfirmed")
        return pairs

    async def _reorder_ids(self, ids: list[EntityId]) -> Optional[MutationResult]:
        if ids == self.ids() and _orders_match(self.entities, ids):
            return None
        return await self.reorder(dense_pairs(ids))


def _swap_in(s: CollectionSnapshot, placeholder_id: EntityId, entity: OrderedEntity) -> None:
    if not s.replace(entity, old_id=placeholder_id):
        s.append(entity)


def _orders_match(entities: Sequence[OrderedEntity], ids: list[EntityId]) -> bool:
    """True if the entities already carry orders 0..N-1 in the sequence of ids."""
    return [e.order for e in entities] == list(range(len(ids)))
