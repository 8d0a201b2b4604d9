"""
Collection store tests: load-time normalisation with write-back, change
notification, and compare-and-swap on the SQL-backed store.
"""

import pytest
from sqlalchemy.exc import OperationalError

from conftest import make_lot, make_order, seed
from exportops.errors import StorageError, WriteConflictError
from exportops.services import store as store_module
from exportops.services.store import (
    ASSIGNMENTS_KEY,
    INVENTORY_KEY,
    SALES_ORDERS_KEY,
    MemoryStore,
    Repository,
    SqlStore,
)


class TestNormalisation:
    def test_lot_token_synthesised_once_and_written_back(self, memory_store, repository):
        raw = make_lot("lot-1", 10)
        del raw["trackingToken"]
        del raw["statusHistory"]
        seed(memory_store, inventory=[raw])

        first = repository.inventory()[0]
        second = repository.inventory()[0]

        assert first.tracking_token
        assert first.tracking_token == second.tracking_token
        stored = memory_store.load(INVENTORY_KEY)[0]
        assert stored["trackingToken"] == first.tracking_token
        assert [h["status"] for h in stored["statusHistory"]] == ["CONFIRMED"]

    def test_history_gets_entry_when_status_disagrees(self, memory_store, repository):
        seed(memory_store, inventory=[make_lot("lot-1", 10, status="IN_TRANSIT")])
        lot = repository.inventory()[0]
        assert [h.status for h in lot.status_history] == ["CONFIRMED", "IN_TRANSIT"]

    def test_active_recomputed_from_cases(self, memory_store, repository):
        seed(memory_store, inventory=[make_lot("lot-1", 10, casesAvailable=0, active=True)])
        assert repository.inventory()[0].active is False
        assert memory_store.load(INVENTORY_KEY)[0]["active"] is False

    def test_legacy_order_gets_single_line(self, memory_store, repository):
        legacy = make_order("DEM-9")
        del legacy["lines"]
        del legacy["trackingToken"]
        legacy.update(material="1113201", description="SA TD Pr 2-3 10LB", cases=40)
        seed(memory_store, sales_orders=[legacy])

        order = repository.sales_orders()[0]

        assert len(order.lines) == 1
        line = order.lines[0]
        assert line.material == "1113201"
        assert line.cases == 40
        assert line.format_lb == 10
        assert line.id
        assert order.tracking_token.startswith("order-")
        assert memory_store.load(SALES_ORDERS_KEY)[0]["lines"][0]["id"] == line.id

    def test_customer_name_falls_back(self, memory_store, repository):
        seed(memory_store, sales_orders=[
            make_order("DEM-1", customerName="", shipTo="Dock 7"),
            make_order("DEM-2", customerName="", shipTo=""),
        ])
        names = [o.customer_name for o in repository.sales_orders()]
        assert names == ["Dock 7", "Customer"]

    def test_assignment_without_items_gets_empty_list(self, memory_store, repository):
        seed(memory_store, assignments=[
            {"id": "ASG-0001", "date": "2025-11-01", "type": "SPOT", "customer": "X", "state": "VOID"},
            {"id": "ASG-0002", "date": "2025-11-01", "type": "SPOT", "customer": "X", "state": "VOID",
             "items": "broken"},
        ])
        assignments = repository.assignments()
        assert [a.items for a in assignments] == [(), ()]
        assert [a["items"] for a in memory_store.load(ASSIGNMENTS_KEY)] == [[], []]

    def test_clean_records_are_not_rewritten(self, memory_store, repository):
        seed(memory_store, inventory=[make_lot("lot-1", 10)])
        calls = []
        memory_store.subscribe(calls.append)

        repository.inventory()

        assert calls == []


class TestNotification:
    def test_subscribers_receive_changed_keys(self):
        store = MemoryStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)

        store.save_many({INVENTORY_KEY: [], ASSIGNMENTS_KEY: []})
        unsubscribe()
        store.save(SALES_ORDERS_KEY, [])

        assert seen == [{INVENTORY_KEY, ASSIGNMENTS_KEY}]

    def test_failing_subscriber_does_not_break_save(self):
        store = MemoryStore()

        def broken(keys):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.save(INVENTORY_KEY, [{"id": "x"}])
        assert store.load(INVENTORY_KEY) == [{"id": "x"}]

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError):
            MemoryStore().save("lots", [])


class TestSqlStore:
    def test_round_trip_across_instances(self, app):
        SqlStore().save(INVENTORY_KEY, [make_lot("lot-1", 10)])

        fresh = SqlStore()
        assert fresh.load(INVENTORY_KEY)[0]["id"] == "lot-1"
        assert fresh.load(SALES_ORDERS_KEY) == []

    def test_save_many_commits_together(self, app):
        store = SqlStore()
        store.save_many({INVENTORY_KEY: [make_lot("lot-1", 10)], ASSIGNMENTS_KEY: []})
        status = store.status()
        assert status["dirty_keys"] == []
        assert set(status["versions"]) == {INVENTORY_KEY, ASSIGNMENTS_KEY}

    def test_other_writers_rows_are_seen_on_next_load(self, app):
        first = SqlStore()
        second = SqlStore()
        assert second.load(INVENTORY_KEY) == []

        first.save(INVENTORY_KEY, [make_lot("lot-1", 10)])

        assert second.load(INVENTORY_KEY)[0]["casesAvailable"] == 10

    def test_stale_write_conflicts_then_recovers(self, app):
        first = SqlStore()
        first.save(INVENTORY_KEY, [make_lot("lot-1", 10)])

        second = SqlStore()
        assert second.load(INVENTORY_KEY)[0]["casesAvailable"] == 10

        first.load(INVENTORY_KEY)
        first.save(INVENTORY_KEY, [make_lot("lot-1", 4)])

        with pytest.raises(WriteConflictError):
            second.save(INVENTORY_KEY, [make_lot("lot-1", 7)])

        # No divergent copy is kept: the next read sees the winning write
        assert second.dirty_keys == set()
        assert second.load(INVENTORY_KEY)[0]["casesAvailable"] == 4

        second.save(INVENTORY_KEY, [make_lot("lot-1", 3)])
        assert first.load(INVENTORY_KEY)[0]["casesAvailable"] == 3

    def test_repository_does_not_swallow_conflicts(self, app):
        first = SqlStore()
        first.save(INVENTORY_KEY, [make_lot("lot-1", 10)])
        repo = Repository(SqlStore())
        lot = repo.inventory()[0]

        first.load(INVENTORY_KEY)
        first.save(INVENTORY_KEY, [make_lot("lot-1", 4)])

        lot.cases_available = 9
        with pytest.raises(WriteConflictError):
            repo.save(inventory=[lot])

    def test_repository_swallows_database_failures(self, app, monkeypatch):
        store = SqlStore()
        store.save(INVENTORY_KEY, [make_lot("lot-1", 10)])
        repo = Repository(store)
        lot = repo.inventory()[0]

        def unavailable(func, **kwargs):
            raise OperationalError("UPDATE collection_blobs", {}, Exception("database is locked"))

        monkeypatch.setattr(store_module, "run_with_retry", unavailable)
        lot.cases_available = 9
        repo.save(inventory=[lot])

        assert store.dirty_keys == {INVENTORY_KEY}
        assert repo.find_lot("lot-1").cases_available == 9
        with pytest.raises(StorageError):
            repo.save(inventory=[lot], strict=True)

        monkeypatch.undo()
        repo.save(inventory=[lot])

        assert store.dirty_keys == set()
        assert SqlStore().load(INVENTORY_KEY)[0]["casesAvailable"] == 9
