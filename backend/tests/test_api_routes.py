"""
Dashboard API tests through the Flask test client (SQL-backed store).
"""

import pytest

from conftest import make_lot, make_order, seed
from exportops.errors import WriteConflictError
from exportops.services.app_services import STORE_EXTENSION
from exportops.services.store import SqlStore


@pytest.fixture
def seeded(app):
    seed(
        app.extensions[STORE_EXTENSION],
        inventory=[make_lot("lot-1", 175), make_lot("lot-2", 10, warehouse="SEA-1", status="IN_TRANSIT")],
        sales_orders=[make_order("DEM-1")],
        assignments=[],
    )
    return app


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["tracking_sync"]["enabled"] is False


def test_create_and_list_lots(client):
    resp = client.post("/api/inventory", json={"po": "P1", "material": "M1", "casesOrdered": 12})
    assert resp.status_code == 201
    created = resp.get_json()
    assert created["casesAvailable"] == 12
    assert created["trackingLink"] == f"https://track.test/track/{created['trackingToken']}"

    listed = client.get("/api/inventory").get_json()
    assert listed["count"] == 1
    assert listed["items"][0]["id"] == created["id"]


def test_create_lot_validation_error(client):
    resp = client.post("/api/inventory", json={"po": "P1", "material": "M1", "casesOrdered": -3})
    assert resp.status_code == 400
    assert "casesOrdered" in resp.get_json()["error"]


def test_assignment_lifecycle(client, seeded):
    resp = client.post("/api/assignments", json={
        "type": "ORDER",
        "salesOrderId": "DEM-1",
        "items": [{"lotId": "lot-1", "cases": 120}],
    })
    assert resp.status_code == 201
    assignment = resp.get_json()
    assert assignment["id"] == "ASG-0001"
    assert client.get("/api/inventory/lot-1").get_json()["casesAvailable"] == 55

    remaining = client.get("/api/orders/DEM-1/remaining").get_json()
    assert remaining["lines"][0]["remaining"] == 0

    resp = client.post(f"/api/assignments/{assignment['id']}/void")
    assert resp.status_code == 200
    assert resp.get_json()["state"] == "VOID"
    assert client.get("/api/inventory/lot-1").get_json()["casesAvailable"] == 175

    resp = client.post(f"/api/assignments/{assignment['id']}/void")
    assert resp.status_code == 409

    resp = client.patch(f"/api/assignments/{assignment['id']}", json={"state": "ACTIVE"})
    assert resp.status_code == 200
    assert client.get("/api/inventory/lot-1").get_json()["casesAvailable"] == 55

    resp = client.delete(f"/api/assignments/{assignment['id']}")
    assert resp.status_code == 200
    assert client.get("/api/inventory/lot-1").get_json()["casesAvailable"] == 175
    assert client.get("/api/assignments").get_json()["count"] == 0


def test_insufficient_stock_is_400_with_detail(client, seeded):
    resp = client.post("/api/assignments", json={
        "type": "SPOT",
        "spotClient": "Fish Market",
        "items": [{"lotId": "lot-1", "cases": 5}, {"lotId": "lot-2", "cases": 11}],
    })
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["lot_id"] == "lot-2"
    assert body["available"] == 10
    assert body["requested"] == 11
    assert client.get("/api/inventory/lot-1").get_json()["casesAvailable"] == 175


def test_write_conflict_is_409_after_retries(client, seeded, monkeypatch):
    attempts = []

    def conflicting_write(self, collections):
        attempts.append(sorted(collections))
        raise WriteConflictError("inventory changed by another writer")

    monkeypatch.setattr(SqlStore, "_write", conflicting_write)
    resp = client.post("/api/assignments", json={
        "type": "SPOT",
        "spotClient": "Fish Market",
        "items": [{"lotId": "lot-1", "cases": 5}],
    })

    assert resp.status_code == 409
    assert "another writer" in resp.get_json()["error"]
    assert len([keys for keys in attempts if "assignments" in keys]) == 3
    monkeypatch.undo()
    assert client.get("/api/inventory/lot-1").get_json()["casesAvailable"] == 175


def test_quick_assign_reports_over_allocation(client, seeded):
    resp = client.post("/api/assignments/quick", json={
        "lotId": "lot-1", "salesOrderId": "DEM-1", "lineId": "line-1", "cases": 150,
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["over_allocated"] is True
    assert body["remaining_before"] == 120


def test_unknown_assignment_is_404(client, seeded):
    assert client.post("/api/assignments/ASG-9999/void").status_code == 404


def test_status_change_and_history(client, seeded):
    resp = client.post("/api/inventory/lot-1/status", json={"status": "IN_TRANSIT"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "IN_TRANSIT"

    history = client.get("/api/inventory/lot-1/history").get_json()["items"]
    assert [h["status"] for h in history] == ["CONFIRMED", "IN_TRANSIT"]

    resp = client.post("/api/inventory/lot-1/status", json={"status": "LOST"})
    assert resp.status_code == 400


def test_archive_requires_delivered(client, seeded):
    assert client.post("/api/inventory/lot-1/archive").status_code == 409
    client.post("/api/inventory/lot-1/status", json={"status": "DELIVERED"})
    assert client.post("/api/inventory/lot-1/archive").status_code == 200
    worklist = client.get("/api/inventory/worklist").get_json()["items"]
    assert [row["id"] for row in worklist] == ["lot-2"]


def test_orders_crud(client):
    resp = client.post("/api/orders", json={
        "demandId": "DEM-77", "customerName": "Acme", "lines": [{"material": "M1", "cases": 4}],
    })
    assert resp.status_code == 201

    resp = client.put("/api/orders/DEM-77", json={"week": "W47"})
    assert resp.status_code == 200
    assert resp.get_json()["week"] == "W47"

    assert client.get("/api/orders").get_json()["count"] == 1
    assert client.delete("/api/orders/DEM-77").status_code == 200
    assert client.get("/api/orders/DEM-77").status_code == 404


def test_reports(client, seeded):
    client.post("/api/assignments", json={
        "type": "ORDER", "salesOrderId": "DEM-1", "items": [{"lotId": "lot-2", "cases": 4}],
    })

    kpis = client.get("/api/reports/kpis").get_json()
    assert kpis["total_cases_available"] == 175 + 6
    assert kpis["total_assignments"] == 1
    assert kpis["pending_orders"] == 1

    inbox = client.get("/api/reports/inbox?status=IN_TRANSIT").get_json()["items"]
    assert [entry["assignment"]["id"] for entry in inbox] == ["ASG-0001"]

    assert client.get("/api/reports/inbox?status=NOPE").status_code == 400
    assert client.get("/api/reports/categories").status_code == 200
    assert client.get("/api/reports/aggregates").status_code == 200
    feed = client.get("/api/reports/awb-feed?warehouse=SEA-1").get_json()["items"]
    assert [row["id"] for row in feed] == ["lot-2"]
    assert feed[0]["customer"] == "Acme Seafood"


def test_cors_for_configured_origin(client):
    resp = client.get("/api/orders", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    resp = client.get("/api/orders", headers={"Origin": "http://evil.test"})
    assert "Access-Control-Allow-Origin" not in resp.headers
