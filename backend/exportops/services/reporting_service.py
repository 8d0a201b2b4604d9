# Overview: Service-layer aggregations for the dashboard, categories, operations inbox and AWB feed.

from __future__ import annotations

from ..domain import ASSIGNMENT_TYPE_ORDER, ORDER_PROGRESS_COMPLETED, STATUS_CONFIRMED
from ..errors import ValidationError
from ..time_utils import parse_iso_datetime
from .pipeline_service import PIPELINE_STAGES, lot_pipeline_index, stage_for_assignment
from .store import Repository


def dashboard_kpis(*, repository: Repository) -> dict:
    lots = [lot for lot in repository.inventory() if lot.active]
    return {
        "total_cases_available": sum(lot.cases_available for lot in lots),
        "total_lbs_available": sum(lot.total_lbs for lot in lots),
        "total_assignments": len(repository.assignments()),
        "pending_orders": sum(
            1 for order in repository.sales_orders() if order.progress_status != ORDER_PROGRESS_COMPLETED
        ),
    }


def dashboard_aggregates(*, repository: Repository) -> dict:
    by_warehouse: dict[str, dict] = {}
    by_status: dict[str, dict] = {}
    for lot in repository.inventory():
        if not lot.active:
            continue
        wh = by_warehouse.setdefault(lot.warehouse, {"warehouse": lot.warehouse, "cases": 0, "lbs": 0.0})
        wh["cases"] += lot.cases_available
        wh["lbs"] += lot.total_lbs
        st = by_status.setdefault(lot.status, {"status": lot.status, "cases": 0})
        st["cases"] += lot.cases_available

    by_state: dict[str, dict] = {}
    for assignment in repository.assignments():
        row = by_state.setdefault(assignment.state, {"state": assignment.state, "count": 0})
        row["count"] += 1

    return {
        "by_warehouse": list(by_warehouse.values()),
        "by_status": list(by_status.values()),
        "assignments_by_state": list(by_state.values()),
    }


def category_summary(*, repository: Repository) -> list[dict]:
    """Active cases grouped by sector / trim / size, sorted on that key."""
    groups: dict[tuple[str, str, str], dict] = {}
    for lot in repository.inventory():
        if not lot.active:
            continue
        key = (lot.sector, lot.trim, lot.size)
        row = groups.setdefault(key, {
            "key": "-".join(key),
            "sector": lot.sector,
            "trim": lot.trim,
            "size": lot.size,
            "cases": 0,
        })
        row["cases"] += lot.cases_available
    return [groups[key] for key in sorted(groups)]


def operations_inbox(*, repository: Repository, status_filter: str | None = None, sort: str = "eta") -> list[dict]:
    """
    Assignments with their resolved lots, order and earliest pipeline stage.

    status_filter keeps entries whose earliest stage is that pipeline stage
    (overlay statuses never appear as a stage and are rejected);
    sort is "eta" (first lot's ETA) or "customer".
    """
    if status_filter and status_filter not in PIPELINE_STAGES:
        raise ValidationError(f"status must be one of: {', '.join(PIPELINE_STAGES)}")
    if sort not in ("eta", "customer"):
        raise ValidationError("sort must be eta or customer")

    lots_by_id = {lot.id: lot for lot in repository.inventory()}
    orders_by_id = {order.id: order for order in repository.sales_orders()}

    entries = []
    for assignment in repository.assignments():
        stage = stage_for_assignment(assignment, lots_by_id)
        status = PIPELINE_STAGES[stage] if assignment.items else STATUS_CONFIRMED
        if status_filter and status != status_filter:
            continue
        lots = [lots_by_id[item.lot_id] for item in assignment.items if item.lot_id in lots_by_id]
        order = orders_by_id.get(assignment.sales_order_id) if assignment.sales_order_id else None
        entries.append({
            "assignment": assignment.to_dict(),
            "lots": [lot.to_dict() for lot in lots],
            "sales_order": order.to_dict() if order else None,
            "status": status,
            "stage_index": stage,
            "_eta": lots[0].eta if lots else "",
        })

    if sort == "customer":
        entries.sort(key=lambda e: e["assignment"]["customer"])
    else:
        entries.sort(key=lambda e: e["_eta"])
    for entry in entries:
        entry.pop("_eta")
    return entries


def awb_feed(*, repository: Repository, warehouse: str | None = None) -> list[dict]:
    """
    Lots with their AWB, stage and customer, most recently updated first.

    A lot shows an order only through an ACTIVE ORDER assignment, as on the
    public tracking view.
    """
    assignments = repository.assignments()
    orders_by_id = {order.id: order for order in repository.sales_orders()}

    feed = []
    for lot in repository.inventory():
        if warehouse and lot.warehouse != warehouse:
            continue
        linked = next(
            (
                a for a in assignments
                if a.is_active
                and a.type == ASSIGNMENT_TYPE_ORDER
                and a.sales_order_id in orders_by_id
                and a.holds_lot(lot.id)
            ),
            None,
        )
        order = orders_by_id.get(linked.sales_order_id) if linked else None
        feed.append({
            "id": lot.id,
            "awb": lot.awb or "Pending",
            "status": lot.status,
            "stage_index": lot_pipeline_index(lot),
            "eta": lot.eta,
            "po": lot.po,
            "customer": (order.customer_name or order.ship_to) if order else lot.customer,
            "order_ref": order.demand_id if order else None,
            "last_update": lot.last_update,
        })

    def _updated(entry: dict) -> float:
        try:
            parsed = parse_iso_datetime(entry["last_update"])
        except ValueError:
            return 0.0
        return parsed.timestamp() if parsed else 0.0

    feed.sort(key=_updated, reverse=True)
    return feed
