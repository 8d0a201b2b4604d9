"""
Public tracking link tests: token resolution, order vs lot views, and the
fail-closed 404.
"""

import json

import pytest

from conftest import make_lot, make_order, seed
from exportops.domain import InventoryLot
from exportops.errors import NotFoundError
from exportops.services.app_services import STORE_EXTENSION
from exportops.services.public_tracking_service import (
    build_tracking_view,
    resolve_snapshot,
    tracking_link,
)


def _assignment(assignment_id, lot_ids, *, order_id="DEM-1", state="ACTIVE", type_="ORDER"):
    return {
        "id": assignment_id,
        "date": "2025-11-01",
        "type": type_,
        "salesOrderId": order_id if type_ == "ORDER" else None,
        "customer": "Acme Seafood",
        "state": state,
        "items": [{"lotId": lot_id, "cases": 5} for lot_id in lot_ids],
    }


def _snapshot(inventory, sales_orders=(), assignments=()):
    return {"inventory": list(inventory), "sales_orders": list(sales_orders), "assignments": list(assignments)}


class TestBuildView:
    def test_token_not_in_snapshot_fails_closed(self):
        snapshot = _snapshot([make_lot("lot-1")], [make_order()])
        with pytest.raises(NotFoundError):
            build_tracking_view("tok-other", snapshot)

    def test_order_view_through_active_assignment(self):
        snapshot = _snapshot(
            [
                make_lot("lot-1", status="IN_TRANSIT"),
                make_lot("lot-2", status="DELIVERED"),
                make_lot("lot-3"),
            ],
            [make_order("DEM-1")],
            [_assignment("ASG-0001", ["lot-1"]), _assignment("ASG-0002", ["lot-2"])],
        )

        view = build_tracking_view("tok-lot-2", snapshot)

        assert view["kind"] == "order"
        assert view["order"]["id"] == "DEM-1"
        assert [lot["id"] for lot in view["lots"]] == ["lot-1", "lot-2"]
        assert view["stageIndex"] == 1
        assert [s["current"] for s in view["steps"]] == [False, True, False, False]

    def test_void_assignment_does_not_link_order(self):
        snapshot = _snapshot(
            [make_lot("lot-1", customerPO="CPO-9")],
            [make_order("DEM-1", customerPO="CPO-1")],
            [_assignment("ASG-0001", ["lot-1"], state="VOID")],
        )

        view = build_tracking_view("tok-lot-1", snapshot)

        assert view["kind"] == "lot"
        assert view["salesOrder"] is None
        assert [a["id"] for a in view["assignments"]] == ["ASG-0001"]

    def test_lot_view_matches_order_by_customer_po(self):
        snapshot = _snapshot(
            [make_lot("lot-1", customerPO="CPO-1", status="DELAYED")],
            [make_order("DEM-1", customerPO="CPO-1")],
        )

        view = build_tracking_view("tok-lot-1", snapshot)

        assert view["kind"] == "lot"
        assert view["salesOrder"]["id"] == "DEM-1"
        assert view["lot"]["statusLabel"] == "Delayed"
        assert view["stageIndex"] == 1
        assert [h["status"] for h in view["lot"]["statusHistory"]] == ["CONFIRMED", "DELAYED"]

    def test_order_missing_from_snapshot_falls_back_to_lot_view(self):
        snapshot = _snapshot(
            [make_lot("lot-1")],
            [],
            [_assignment("ASG-0001", ["lot-1"], order_id="DEM-404")],
        )
        assert build_tracking_view("tok-lot-1", snapshot)["kind"] == "lot"

    def test_accepts_camel_case_snapshot(self):
        view = build_tracking_view("tok-lot-1", {"inventory": [make_lot("lot-1")], "salesOrders": []})
        assert view["lot"]["id"] == "lot-1"


class TestResolve:
    def test_local_inventory_is_used_first(self, memory_store, repository):
        seed(memory_store, inventory=[make_lot("lot-1")], sales_orders=[make_order()])

        class ExplodingSource:
            def fetch(self, token):
                raise AssertionError("remote should not be called")

        snapshot = resolve_snapshot("tok-lot-1", repository, ExplodingSource())
        assert snapshot["sales_orders"][0]["id"] == "DEM-1"

    def test_remote_used_for_unknown_local_token(self, repository):
        class Source:
            def fetch(self, token):
                return _snapshot([make_lot("remote", trackingToken=token)])

        snapshot = resolve_snapshot("tok-remote", repository, Source())
        assert snapshot["inventory"][0]["id"] == "remote"


def test_tracking_link():
    lot = InventoryLot.from_dict(make_lot("lot-1"))
    assert tracking_link(lot, "https://track.test/") == "https://track.test/track/tok-lot-1"


class TestRoute:
    def test_valid_token_from_local_store(self, app, client):
        seed(app.extensions[STORE_EXTENSION], inventory=[make_lot("lot-1")], sales_orders=[make_order()])

        resp = client.get("/track/tok-lot-1")

        assert resp.status_code == 200
        assert resp.get_json()["lot"]["id"] == "lot-1"

    def test_token_from_snapshot_table(self, client):
        client.post(
            "/api/create-tracking",
            data=json.dumps({"token": "tok-x", "inventory": [make_lot("x", trackingToken="tok-x")]}),
            content_type="application/json",
        )

        resp = client.get("/track/tok-x")

        assert resp.status_code == 200
        assert resp.get_json()["token"] == "tok-x"

    def test_unknown_token_is_invalid_link(self, client):
        resp = client.get("/track/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "invalid link"}

    def test_snapshot_without_matching_lot_is_invalid_link(self, client):
        client.post(
            "/api/create-tracking",
            data=json.dumps({"token": "tok-y", "inventory": [make_lot("y", trackingToken="other")]}),
            content_type="application/json",
        )
        resp = client.get("/track/tok-y")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "invalid link"}
