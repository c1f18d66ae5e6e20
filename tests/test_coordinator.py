import asyncio
import unittest
from typing import Any, Optional

from ordersync.cache import QueryCache
from ordersync.coordinator import MutationCoordinator
from ordersync.errors import (
    ApiError,
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    TransportError,
    ValidationError,
)
from ordersync.models import ARTICLES, CollectionSpec
from ordersync.notify import CollectingNotifier


class FakeStore:
    """
    In-memory store. With hold=True every mutating call parks on a future
    that the test resolves or rejects, so completions can be reordered.
    """

    def __init__(self, items: list[dict[str, Any]]) -> None:
        self.items = [dict(i) for i in items]
        self.calls: list[tuple] = []
        self.futures: list[asyncio.Future] = []
        self.hold = False
        self.fail_with: Optional[Exception] = None
        self.next_id = 100
        self.fetches = 0
        self.fetch_gate: Optional[asyncio.Event] = None

    async def fetch_all(self, base: str):
        self.fetches += 1
        await asyncio.sleep(0)
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        return [dict(i) for i in self.items]

    async def create(self, base: str, payload):
        self.calls.append(("create", base, dict(payload)))
        result = dict(payload)
        result["id"] = self.next_id
        self.next_id += 1
        return await self._respond(result)

    async def update(self, base: str, entity_id, fields):
        self.calls.append(("update", base, entity_id, dict(fields)))
        return await self._respond({"id": entity_id, **fields})

    async def delete(self, base: str, entity_id):
        self.calls.append(("delete", base, entity_id))
        return await self._respond(None)

    async def reorder(self, base: str, items):
        self.calls.append(("reorder", base, [dict(i) for i in items]))
        return await self._respond(None)

    async def set_published(self, base: str, entity_id, publish: bool):
        self.calls.append(("set_published", base, entity_id, publish))
        return await self._respond({"id": entity_id, "isPublished": publish})

    def resolve(self, index: int, value: Any = None) -> None:
        self.futures[index].set_result(value)

    def reject(self, index: int, exc: Exception) -> None:
        self.futures[index].set_exception(exc)

    async def _respond(self, result: Any) -> Any:
        if self.hold:
            fut = asyncio.get_running_loop().create_future()
            self.futures.append(fut)
            value = await fut
            return result if value is None else value
        if self.fail_with is not None:
            raise self.fail_with
        return result


ITEMS = [
    {"id": 1, "order": 0, "isActive": True, "name": "A"},
    {"id": 2, "order": 1, "isActive": True, "name": "B"},
    {"id": 3, "order": 2, "isActive": True, "name": "C"},
]

SPEC = CollectionSpec(
    name="items",
    admin_path="/api/admin/items",
    label="Item",
    public_paths=("/api/items",),
)


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class CoordinatorTestCase(unittest.IsolatedAsyncioTestCase):
    spec = SPEC
    items = ITEMS

    async def asyncSetUp(self) -> None:
        self.store = FakeStore(self.items)
        self.cache = QueryCache()
        self.notifier = CollectingNotifier()
        self.coord = MutationCoordinator(self.spec, self.store, self.cache, notifier=self.notifier)
        await self.coord.load()

    def orders(self):
        return [(e.id, e.order) for e in self.coord.entities]


class TestLoad(unittest.IsolatedAsyncioTestCase):
    async def test_load_sorts_by_order(self) -> None:
        store = FakeStore([
            {"id": "b", "order": 1},
            {"id": "c", "order": 2},
            {"id": "a", "order": 0},
        ])
        coord = MutationCoordinator(SPEC, store, QueryCache(), notifier=CollectingNotifier())

        entities = await coord.load()

        self.assertEqual([e.id for e in entities], ["a", "b", "c"])
        self.assertTrue(coord.is_loaded)

    async def test_concurrent_loads_share_one_fetch(self) -> None:
        store = FakeStore(ITEMS)
        coord = MutationCoordinator(SPEC, store, QueryCache(), notifier=CollectingNotifier())

        first, second = await asyncio.gather(coord.load(), coord.load())

        self.assertEqual(store.fetches, 1)
        self.assertEqual(first, second)

    async def test_loaded_collection_is_not_refetched(self) -> None:
        store = FakeStore(ITEMS)
        coord = MutationCoordinator(SPEC, store, QueryCache(), notifier=CollectingNotifier())

        await coord.load()
        await coord.load()

        self.assertEqual(store.fetches, 1)

    async def test_invalid_entity_from_store_raises_api_error(self) -> None:
        store = FakeStore([{"order": 0}])
        coord = MutationCoordinator(SPEC, store, QueryCache(), notifier=CollectingNotifier())

        with self.assertRaises(ApiError):
            await coord.load()
        self.assertFalse(coord.is_loaded)

    async def test_mutation_before_load_raises(self) -> None:
        coord = MutationCoordinator(SPEC, FakeStore(ITEMS), QueryCache(), notifier=CollectingNotifier())

        with self.assertRaises(InvalidStateError):
            await coord.update(1, {"name": "x"})


class TestReorder(CoordinatorTestCase):
    async def test_reorder_success_keeps_optimistic_state(self) -> None:
        result = await self.coord.reorder([3, 1, 2])

        self.assertTrue(result.ok)
        self.assertEqual(self.orders(), [(3, 0), (1, 1), (2, 2)])
        self.assertEqual(
            self.store.calls,
            [("reorder", "/api/admin/items", [
                {"id": 3, "order": 0},
                {"id": 1, "order": 1},
                {"id": 2, "order": 2},
            ])],
        )
        self.assertEqual(self.coord.list_pending(), [])

    async def test_drag_to_top_then_server_error_restores_original(self) -> None:
        self.store.hold = True
        task = asyncio.create_task(self.coord.reorder([3, 1, 2]))
        await settle()

        self.assertEqual(self.orders(), [(3, 0), (1, 1), (2, 2)])

        self.store.reject(0, ApiError("HTTP error 500", details={"status_code": 500}))
        result = await task

        self.assertEqual(result.status, "error")
        self.assertTrue(result.rolled_back)
        self.assertEqual(result.error_type, "ApiError")
        self.assertEqual(self.orders(), [(1, 0), (2, 1), (3, 2)])
        self.assertEqual(len(self.notifier.errors), 1)

    async def test_pairs_and_wire_dicts_are_accepted(self) -> None:
        await self.coord.reorder([(1, 2), (2, 0), (3, 1)])
        self.assertEqual([e.id for e in self.coord.entities], [2, 3, 1])

        await self.coord.reorder([{"id": 1, "order": 0}, {"id": 2, "order": 1}, {"id": 3, "order": 2}])
        self.assertEqual([e.id for e in self.coord.entities], [1, 2, 3])

    async def test_incomplete_mapping_raises_before_any_write(self) -> None:
        version = self.cache.version(SPEC.cache_key)

        with self.assertRaises(InvalidArgumentError):
            await self.coord.reorder([3, 1])
        with self.assertRaises(InvalidArgumentError):
            await self.coord.reorder([(1, 0), (2, 1), (3, 5)])
        with self.assertRaises(InvalidArgumentError):
            await self.coord.reorder([1, 2, 3, 4])

        self.assertEqual(self.cache.version(SPEC.cache_key), version)
        self.assertEqual(self.store.calls, [])
        self.assertEqual(self.coord.list_pending(), [])

    async def test_orders_stay_dense_after_successful_reorders(self) -> None:
        await self.coord.reorder([2, 3, 1])
        await self.coord.move_down(2)
        await self.coord.move_to(1, 0)

        self.assertEqual(sorted(e.order for e in self.coord.entities), [0, 1, 2])
        self.assertEqual([e.id for e in self.coord.entities], [1, 3, 2])

    async def test_move_up_on_first_item_is_a_noop(self) -> None:
        self.assertIsNone(await self.coord.move_up(1))
        self.assertIsNone(await self.coord.move_down(3))
        self.assertEqual(self.store.calls, [])

    async def test_move_up_swaps_with_predecessor(self) -> None:
        result = await self.coord.move_up(3)

        self.assertTrue(result.ok)
        self.assertEqual([e.id for e in self.coord.entities], [1, 3, 2])

    async def test_later_reorder_survives_earlier_reorder_failure(self) -> None:
        self.store.hold = True
        first = asyncio.create_task(self.coord.reorder([3, 1, 2]))
        await settle()
        second = asyncio.create_task(self.coord.reorder([2, 3, 1]))
        await settle()

        self.store.reject(0, TransportError("Network error"))
        await first
        self.assertEqual([e.id for e in self.coord.entities], [2, 3, 1])

        self.store.resolve(1)
        result = await second
        self.assertTrue(result.ok)
        self.assertEqual([e.id for e in self.coord.entities], [2, 3, 1])

    async def test_both_reorders_failing_restores_original(self) -> None:
        self.store.hold = True
        first = asyncio.create_task(self.coord.reorder([3, 1, 2]))
        await settle()
        second = asyncio.create_task(self.coord.reorder([2, 3, 1]))
        await settle()

        self.store.reject(1, TransportError("Network error"))
        await second
        self.store.reject(0, TransportError("Network error"))
        await first

        self.assertEqual(self.orders(), [(1, 0), (2, 1), (3, 2)])


class TestToggleActive(CoordinatorTestCase):
    async def test_toggle_flips_and_keeps_value_on_success(self) -> None:
        result = await self.coord.toggle_active(2)

        self.assertTrue(result.ok)
        self.assertFalse(self.coord.get(2).is_active)
        self.assertEqual(self.store.calls, [("update", "/api/admin/items", 2, {"isActive": False})])

    async def test_toggle_failure_restores_only_active_flag(self) -> None:
        self.store.hold = True
        task = asyncio.create_task(self.coord.toggle_active(2, False))
        await settle()
        self.assertFalse(self.coord.get(2).is_active)

        self.store.reject(0, ApiError("HTTP error 500"))
        result = await task

        self.assertFalse(result.ok)
        entity = self.coord.get(2)
        self.assertTrue(entity.is_active)
        self.assertEqual(entity.order, 1)
        self.assertEqual(entity.payload["name"], "B")

    async def test_toggle_is_independent_of_failing_reorder(self) -> None:
        self.store.hold = True
        reorder = asyncio.create_task(self.coord.reorder([3, 1, 2]))
        await settle()
        toggle = asyncio.create_task(self.coord.toggle_active(2, False))
        await settle()

        self.store.reject(0, ApiError("HTTP error 500"))
        self.store.resolve(1)
        await reorder
        await toggle

        self.assertEqual([e.id for e in self.coord.entities], [1, 2, 3])
        self.assertFalse(self.coord.get(2).is_active)

    async def test_reorder_survives_failing_toggle(self) -> None:
        self.store.hold = True
        reorder = asyncio.create_task(self.coord.reorder([3, 1, 2]))
        await settle()
        toggle = asyncio.create_task(self.coord.toggle_active(2, False))
        await settle()

        self.store.reject(1, ApiError("HTTP error 500"))
        await toggle
        self.store.resolve(0)
        await reorder

        self.assertEqual([e.id for e in self.coord.entities], [3, 1, 2])
        self.assertTrue(self.coord.get(2).is_active)

    async def test_toggles_on_different_items_settle_out_of_order(self) -> None:
        self.store.hold = True
        first = asyncio.create_task(self.coord.toggle_active(1, False))
        await settle()
        second = asyncio.create_task(self.coord.toggle_active(3, False))
        await settle()

        self.store.resolve(1)
        await second
        self.store.reject(0, ApiError("HTTP error 500"))
        await first

        self.assertTrue(self.coord.get(1).is_active)
        self.assertTrue(self.coord.get(2).is_active)
        self.assertFalse(self.coord.get(3).is_active)
        self.assertEqual(self.orders(), [(1, 0), (2, 1), (3, 2)])

    async def test_rapid_toggles_settle_to_last_value(self) -> None:
        self.store.hold = True
        first = asyncio.create_task(self.coord.toggle_active(2))
        await settle()
        second = asyncio.create_task(self.coord.toggle_active(2))
        await settle()

        self.store.reject(0, TransportError("Network error"))
        await first
        self.assertTrue(self.coord.get(2).is_active)

        self.store.resolve(1)
        await second
        self.assertTrue(self.coord.get(2).is_active)


class TestUpdate(CoordinatorTestCase):
    async def test_update_merges_fields(self) -> None:
        result = await self.coord.update(1, {"name": "A2", "extra": 5})

        self.assertTrue(result.ok)
        self.assertEqual(result.entity.payload, {"name": "A2", "extra": 5})

    async def test_update_failure_removes_fields_that_did_not_exist(self) -> None:
        self.store.fail_with = ValidationError("bad", details={"field_errors": {"extra": "required"}})

        result = await self.coord.update(1, {"name": "A2", "extra": 5})

        self.assertFalse(result.ok)
        self.assertEqual(self.coord.get(1).payload, {"name": "A"})
        notification = self.notifier.errors[0]
        self.assertEqual(notification.field_errors, {"extra": "required"})

    async def test_superseded_update_failure_keeps_later_write(self) -> None:
        self.store.hold = True
        first = asyncio.create_task(self.coord.update(1, {"name": "X"}))
        await settle()
        second = asyncio.create_task(self.coord.update(1, {"name": "Y"}))
        await settle()

        self.store.reject(0, ConflictError("gone"))
        await first
        self.assertEqual(self.coord.get(1).payload["name"], "Y")

        self.store.resolve(1)
        await second
        self.assertEqual(self.coord.get(1).payload["name"], "Y")

    async def test_superseded_baseline_is_handed_to_later_write(self) -> None:
        self.store.hold = True
        first = asyncio.create_task(self.coord.update(1, {"name": "X"}))
        await settle()
        second = asyncio.create_task(self.coord.update(1, {"name": "Y"}))
        await settle()

        self.store.reject(0, ConflictError("gone"))
        await first
        self.store.reject(1, ConflictError("gone"))
        await second

        self.assertEqual(self.coord.get(1).payload["name"], "A")

    async def test_rejects_order_and_unknown_ids(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            await self.coord.update(1, {"order": 5})
        with self.assertRaises(InvalidArgumentError):
            await self.coord.update(99, {"name": "x"})
        with self.assertRaises(InvalidArgumentError):
            await self.coord.update(1, {})

    async def test_success_invalidates_public_keys_only(self) -> None:
        self.cache.set_entities("/api/items", [])

        await self.coord.update(1, {"name": "A2"})

        self.assertTrue(self.cache.is_stale("/api/items"))
        self.assertFalse(self.cache.is_stale(SPEC.cache_key))

    async def test_failure_does_not_invalidate_public_keys(self) -> None:
        self.cache.set_entities("/api/items", [])
        self.store.fail_with = ApiError("HTTP error 500")

        await self.coord.update(1, {"name": "A2"})

        self.assertFalse(self.cache.is_stale("/api/items"))


class TestDelete(CoordinatorTestCase):
    async def test_delete_does_not_renumber(self) -> None:
        result = await self.coord.delete(2)

        self.assertTrue(result.ok)
        self.assertEqual(self.orders(), [(1, 0), (3, 2)])

    async def test_delete_failure_reinserts_at_prior_position(self) -> None:
        self.store.hold = True
        task = asyncio.create_task(self.coord.delete(2))
        await settle()
        self.assertEqual([e.id for e in self.coord.entities], [1, 3])

        self.store.reject(0, ApiError("HTTP error 500"))
        result = await task

        self.assertTrue(result.rolled_back)
        self.assertEqual([e.id for e in self.coord.entities], [1, 2, 3])

    async def test_reorder_after_delete_restores_density(self) -> None:
        await self.coord.delete(1)
        await self.coord.reorder([3, 2])

        self.assertEqual(self.orders(), [(3, 0), (2, 1)])


class TestCreate(CoordinatorTestCase):
    async def test_create_appends_placeholder_then_swaps_in_server_entity(self) -> None:
        self.store.hold = True
        task = asyncio.create_task(self.coord.create({"name": "D"}))
        await settle()

        placeholder = self.coord.entities[-1]
        self.assertTrue(str(placeholder.id).startswith("tmp-"))
        self.assertEqual(placeholder.order, 3)
        self.assertTrue(self.coord.is_pending(placeholder.id))

        self.store.resolve(0)
        result = await task

        self.assertTrue(result.ok)
        self.assertEqual(result.entity.id, 100)
        self.assertEqual(result.target_ids, [100])
        self.assertEqual([e.id for e in self.coord.entities], [1, 2, 3, 100])
        self.assertEqual(
            self.store.calls[0],
            ("create", "/api/admin/items", {"name": "D", "order": 3, "isActive": True}),
        )

    async def test_create_failure_removes_placeholder(self) -> None:
        self.store.fail_with = ValidationError("Invalid data")

        result = await self.coord.create({"name": "D"})

        self.assertFalse(result.ok)
        self.assertEqual([e.id for e in self.coord.entities], [1, 2, 3])

    async def test_placeholder_cannot_be_mutated(self) -> None:
        self.store.hold = True
        task = asyncio.create_task(self.coord.create({"name": "D"}))
        await settle()
        placeholder_id = self.coord.entities[-1].id

        with self.assertRaises(InvalidStateError):
            await self.coord.toggle_active(placeholder_id)
        with self.assertRaises(InvalidStateError):
            await self.coord.reorder(self.coord.ids())

        self.store.resolve(0)
        await task

    async def test_create_rejects_payload_with_id(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            await self.coord.create({"id": 7, "name": "D"})


class TestRefresh(CoordinatorTestCase):
    async def test_refresh_refused_while_pending(self) -> None:
        self.store.hold = True
        task = asyncio.create_task(self.coord.toggle_active(1))
        await settle()

        with self.assertRaises(InvalidStateError):
            await self.coord.refresh()

        self.store.resolve(0)
        await task

        self.store.items[0]["name"] = "A-server"
        entities = await self.coord.refresh()
        self.assertEqual(entities[0].payload["name"], "A-server")
        self.assertEqual(self.store.fetches, 2)

    async def test_refresh_keeps_operation_started_during_fetch(self) -> None:
        self.store.fetch_gate = asyncio.Event()
        self.store.hold = True
        refresh = asyncio.create_task(self.coord.refresh())
        await settle()
        toggle = asyncio.create_task(self.coord.toggle_active(2, False))
        await settle()

        self.store.fetch_gate.set()
        await refresh
        self.assertFalse(self.coord.get(2).is_active)
        self.assertTrue(self.cache.is_stale(self.coord.cache_key))

        self.store.resolve(0)
        result = await toggle

        self.assertTrue(result.ok)
        self.assertFalse(self.coord.get(2).is_active)

    async def test_refresh_discards_read_older_than_settled_operation(self) -> None:
        self.store.fetch_gate = asyncio.Event()
        refresh = asyncio.create_task(self.coord.refresh())
        await settle()
        await self.coord.toggle_active(2, False)

        self.store.fetch_gate.set()
        await refresh

        self.assertFalse(self.coord.get(2).is_active)
        self.assertTrue(self.cache.is_stale(self.coord.cache_key))


class TestStoreIds(CoordinatorTestCase):
    items = [
        {"id": "tmp-server", "order": 0, "isActive": True, "name": "A"},
        {"id": "b", "order": 1, "isActive": True, "name": "B"},
    ]

    async def test_store_id_with_placeholder_prefix_is_mutable(self) -> None:
        toggled = await self.coord.toggle_active("tmp-server")
        reordered = await self.coord.reorder(["b", "tmp-server"])

        self.assertTrue(toggled.ok)
        self.assertTrue(reordered.ok)
        self.assertFalse(self.coord.get("tmp-server").is_active)
        self.assertEqual(self.orders(), [("b", 0), ("tmp-server", 1)])


class TestArticles(CoordinatorTestCase):
    spec = ARTICLES
    items = [
        {"id": 1, "order": 0, "isPublished": False, "title": "One"},
        {"id": 2, "order": 1, "isPublished": True, "title": "Two"},
    ]

    async def test_toggle_uses_publish_endpoints(self) -> None:
        await self.coord.toggle_active(1)
        await self.coord.toggle_active(2)

        self.assertEqual(
            self.store.calls,
            [
                ("set_published", "/api/admin/articles", 1, True),
                ("set_published", "/api/admin/articles", 2, False),
            ],
        )
        self.assertTrue(self.coord.get(1).is_active)

    async def test_created_article_defaults_to_unpublished(self) -> None:
        await self.coord.create({"title": "Three"})

        body = self.store.calls[0][2]
        self.assertIs(body["isPublished"], False)


if __name__ == "__main__":
    unittest.main()
