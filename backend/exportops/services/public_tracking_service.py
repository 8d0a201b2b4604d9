# Overview: Resolves a public tracking token into a customer-facing shipment view.

"""
Public tracking (authoritative)

- Fails closed: a token that does not match a lot in the resolved snapshot is
  NotFoundError, whatever else the snapshot holds.
- A lot linked to a sales order through an ACTIVE ORDER assignment gets the
  order-level view (every lot of that order); otherwise the single-lot view.
- Views are built from snapshot data only, never from the live ledger.
"""

from __future__ import annotations

from ..domain import (
    ASSIGNMENT_STATE_ACTIVE,
    ASSIGNMENT_TYPE_ORDER,
    InventoryLot,
    SalesOrder,
)
from ..errors import NotFoundError
from .pipeline_service import STATUS_LABELS, lot_pipeline_index, pipeline_steps
from .store import Repository
from .sync_service import SnapshotSource
from .tracking_service import normalize_snapshot


def tracking_link(lot: InventoryLot, base_url: str) -> str:
    if not lot.tracking_token:
        return ""
    return f"{base_url.rstrip('/')}/track/{lot.tracking_token}"


def resolve_snapshot(token: str, repository: Repository, source: SnapshotSource) -> dict:
    """
    Snapshot for a token: this instance's own collections when they hold the
    token, else the snapshot source.

    Raises:
        NotFoundError: token unknown everywhere
        StorageError: the snapshot source failed
    """
    if not token:
        raise NotFoundError("not found")
    if any(lot.tracking_token == token for lot in repository.inventory()):
        return normalize_snapshot(repository.snapshot())
    return source.fetch(token)


def _item_lot_ids(assignment: dict) -> set[str]:
    return {item.get("lotId") for item in assignment.get("items") or [] if isinstance(item, dict)}


def _lot_view(lot: InventoryLot) -> dict:
    stage = lot_pipeline_index(lot)
    return {
        "id": lot.id,
        "po": lot.po,
        "customerPO": lot.customer_po,
        "material": lot.material,
        "description": lot.description,
        "product": lot.product,
        "casesOrdered": lot.cases_ordered,
        "caseFormatLb": lot.case_format_lb,
        "awb": lot.awb,
        "eta": lot.eta,
        "warehouse": lot.warehouse,
        "status": lot.status,
        "statusLabel": STATUS_LABELS.get(lot.status, lot.status.replace("_", " ")),
        "stageIndex": stage,
        "steps": pipeline_steps(stage),
        "statusHistory": [entry.to_dict() for entry in lot.status_history],
        "lastUpdate": lot.last_update,
    }


def _order_view(order: SalesOrder) -> dict:
    return {
        "id": order.id,
        "customerName": order.display_customer,
        "customerPO": order.customer_po,
        "pickupDate": order.pickup_date,
        "incoterm": order.incoterm,
        "week": order.week,
        "lines": [line.to_dict() for line in order.lines],
        "totalCases": order.total_cases,
    }


def build_tracking_view(token: str, snapshot: dict) -> dict:
    """
    Customer-facing view of the lot behind token.

    Raises:
        NotFoundError: no lot in the snapshot carries token
    """
    snapshot = normalize_snapshot(snapshot)
    lots = [InventoryLot.from_dict(raw) for raw in snapshot["inventory"]]
    lot = next((row for row in lots if row.tracking_token == token), None)
    if lot is None:
        raise NotFoundError("not found")

    orders = [SalesOrder.from_dict(raw) for raw in snapshot["sales_orders"]]
    orders_by_id = {order.id: order for order in orders}
    assignments = snapshot["assignments"]
    related = [a for a in assignments if lot.id in _item_lot_ids(a)]

    linked_order = None
    for assignment in related:
        if (
            assignment.get("state") == ASSIGNMENT_STATE_ACTIVE
            and assignment.get("type") == ASSIGNMENT_TYPE_ORDER
            and assignment.get("salesOrderId") in orders_by_id
        ):
            linked_order = orders_by_id[assignment["salesOrderId"]]
            break

    if linked_order is not None:
        order_assignments = [
            a for a in assignments
            if a.get("salesOrderId") == linked_order.id and a.get("state") == ASSIGNMENT_STATE_ACTIVE
        ]
        held = set().union(*(_item_lot_ids(a) for a in order_assignments))
        order_lots = [row for row in lots if row.id in held]
        stage = min(lot_pipeline_index(row) for row in order_lots)
        return {
            "kind": "order",
            "token": token,
            "order": _order_view(linked_order),
            "lots": [_lot_view(row) for row in order_lots],
            "assignments": order_assignments,
            "stageIndex": stage,
            "steps": pipeline_steps(stage),
        }

    matched_order = None
    if lot.customer_po:
        matched_order = next((o for o in orders if o.customer_po == lot.customer_po), None)
    view = _lot_view(lot)
    return {
        "kind": "lot",
        "token": token,
        "lot": view,
        "salesOrder": _order_view(matched_order) if matched_order else None,
        "assignments": related,
        "stageIndex": view["stageIndex"],
        "steps": view["steps"],
    }
