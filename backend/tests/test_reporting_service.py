import pytest

from conftest import make_lot, make_order, seed
from exportops.errors import ValidationError
from exportops.services.reporting_service import (
    awb_feed,
    category_summary,
    dashboard_aggregates,
    dashboard_kpis,
    operations_inbox,
)


@pytest.fixture
def board(memory_store, ledger):
    seed(
        memory_store,
        inventory=[
            make_lot("lot-1", 100, eta="2025-11-20",
                     statusHistory=[{"at": "2025-11-02T08:00:00Z", "status": "CONFIRMED"}]),
            make_lot("lot-2", 40, warehouse="SEA-1", size="3-4", status="IN_TRANSIT", eta="2025-11-10",
                     awb="016-12345675", statusHistory=[
                         {"at": "2025-11-01T10:00:00Z", "status": "CONFIRMED"},
                         {"at": "2025-11-05T08:00:00Z", "status": "IN_TRANSIT"},
                     ]),
            make_lot("lot-3", 0, eta="2025-11-01"),
        ],
        sales_orders=[
            make_order("DEM-1"),
            make_order("DEM-2", customerName="", shipTo="Blue Harbor", progressStatus="COMPLETED"),
        ],
        assignments=[],
    )
    ledger.create_assignment("ORDER", [("lot-1", 20)], sales_order_id="DEM-1")
    ledger.create_assignment("ORDER", [("lot-2", 10)], sales_order_id="DEM-2")
    ledger.create_assignment("SPOT", [("lot-1", 5), ("lot-2", 5)], spot_client="Aardvark Fish")
    return memory_store


def test_kpis_count_active_lots_only(board, repository):
    kpis = dashboard_kpis(repository=repository)

    assert kpis["total_cases_available"] == 75 + 25
    assert kpis["total_lbs_available"] == (75 + 25) * 35
    assert kpis["total_assignments"] == 3
    assert kpis["pending_orders"] == 1


def test_aggregates(board, repository):
    aggregates = dashboard_aggregates(repository=repository)

    by_warehouse = {row["warehouse"]: row["cases"] for row in aggregates["by_warehouse"]}
    assert by_warehouse == {"MIA-1": 75, "SEA-1": 25}
    by_status = {row["status"]: row["cases"] for row in aggregates["by_status"]}
    assert by_status == {"CONFIRMED": 75, "IN_TRANSIT": 25}
    assert aggregates["assignments_by_state"] == [{"state": "ACTIVE", "count": 3}]


def test_category_summary_sorted_by_key(board, repository):
    rows = category_summary(repository=repository)
    assert [(row["key"], row["cases"]) for row in rows] == [("SA-TD-3-4", 25), ("SA-TD-4-5", 75)]


class TestInbox:
    def test_earliest_stage_and_status_filter(self, board, repository):
        entries = operations_inbox(repository=repository)
        by_id = {entry["assignment"]["id"]: entry for entry in entries}

        assert by_id["ASG-0001"]["status"] == "CONFIRMED"
        assert by_id["ASG-0002"]["status"] == "IN_TRANSIT"
        # Mixed lots sit at the earliest stage
        assert by_id["ASG-0003"]["status"] == "CONFIRMED"
        assert by_id["ASG-0002"]["sales_order"]["id"] == "DEM-2"
        assert by_id["ASG-0003"]["sales_order"] is None

        in_transit = operations_inbox(repository=repository, status_filter="IN_TRANSIT")
        assert [entry["assignment"]["id"] for entry in in_transit] == ["ASG-0002"]

    def test_sort_by_eta_and_customer(self, board, repository):
        by_eta = operations_inbox(repository=repository)
        assert [entry["assignment"]["id"] for entry in by_eta] == ["ASG-0002", "ASG-0003", "ASG-0001"]

        by_customer = operations_inbox(repository=repository, sort="customer")
        assert [entry["assignment"]["customer"] for entry in by_customer] == [
            "Aardvark Fish", "Acme Seafood", "Blue Harbor",
        ]

    @pytest.mark.parametrize("kwargs", [
        {"status_filter": "LOST"},
        {"status_filter": "DELAYED"},
        {"status_filter": "ISSUE_REPORTED"},
        {"sort": "size"},
    ])
    def test_bad_arguments(self, repository, kwargs):
        with pytest.raises(ValidationError):
            operations_inbox(repository=repository, **kwargs)


def test_awb_feed_newest_first_with_pending_placeholder(board, repository):
    feed = awb_feed(repository=repository)

    assert [row["id"] for row in feed] == ["lot-2", "lot-1", "lot-3"]
    assert feed[0]["awb"] == "016-12345675"
    assert feed[0]["customer"] == "Blue Harbor"
    assert feed[0]["order_ref"] == "DEM-2"
    assert feed[1]["awb"] == "Pending"

    assert [row["id"] for row in awb_feed(repository=repository, warehouse="SEA-1")] == ["lot-2"]


def test_awb_feed_ignores_void_order_assignments(board, repository, ledger):
    ledger.void_assignment("ASG-0002")

    row = next(row for row in awb_feed(repository=repository) if row["id"] == "lot-2")

    assert row["order_ref"] is None
    assert row["customer"] == "Acme Seafood"
