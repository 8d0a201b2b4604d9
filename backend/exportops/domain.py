# Overview: Domain records (lots, orders, assignments) and their JSON shape.

"""
Export Ops Domain Records (authoritative)

Wire shape:
- Every record serialises with to_dict() to the camelCase JSON stored in the
  collection blobs and published in tracking snapshots.
- from_dict() is the only deserialisation boundary. It tolerates older or
  partial records and fills the gaps (load-time normalisation); records that
  needed filling are flagged with was_normalized so the caller can write the
  collection back and keep synthesised tokens stable.

Ownership:
- InventoryLot.cases_available / active: Allocation Ledger only.
- InventoryLot.status / status_history: Status Pipeline only.
- Assignment.items never change after creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .services.identifier_service import (
    new_line_id,
    new_order_tracking_token,
    new_tracking_token,
)
from .time_utils import now_z


# Shipment statuses
STATUS_CONFIRMED = "CONFIRMED"
STATUS_IN_TRANSIT = "IN_TRANSIT"
STATUS_READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
STATUS_DELIVERED = "DELIVERED"
STATUS_DELAYED = "DELAYED"
STATUS_ISSUE_REPORTED = "ISSUE_REPORTED"

# Assignment constants
ASSIGNMENT_TYPE_ORDER = "ORDER"
ASSIGNMENT_TYPE_SPOT = "SPOT"
ASSIGNMENT_TYPES = {ASSIGNMENT_TYPE_ORDER, ASSIGNMENT_TYPE_SPOT}

ASSIGNMENT_STATE_ACTIVE = "ACTIVE"
ASSIGNMENT_STATE_VOID = "VOID"
ASSIGNMENT_STATES = {ASSIGNMENT_STATE_ACTIVE, ASSIGNMENT_STATE_VOID}

ORDER_PROGRESS_PENDING = "PENDING"
ORDER_PROGRESS_COMPLETED = "COMPLETED"

DEFAULT_CASE_FORMAT_LB = 35.0
SMALL_CASE_FORMAT_LB = 10.0
DEFAULT_CUSTOMER_NAME = "Customer"


def case_format_from_description(description: str | None, fallback: float = DEFAULT_CASE_FORMAT_LB) -> float:
    """Case format (lb) implied by a product description: '10' means 10 lb cases."""
    if not description:
        return fallback
    if "10" in description.lower():
        return SMALL_CASE_FORMAT_LB
    return fallback


def _str(data: dict, key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _int(data: dict, key: str, default: int = 0) -> int:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(data: dict, key: str, default: float = 0.0) -> float:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class StatusEntry:
    at: str
    status: str

    def to_dict(self) -> dict:
        return {"at": self.at, "status": self.status}

    @classmethod
    def from_dict(cls, data: dict) -> "StatusEntry":
        return cls(at=_str(data, "at"), status=_str(data, "status"))


@dataclass
class InventoryLot:
    id: str
    po: str
    material: str
    cases_ordered: int
    cases_available: int
    status: str
    tracking_token: str
    status_history: list[StatusEntry] = field(default_factory=list)
    active: bool = True
    custom_id: str = ""
    customer_po: str = ""
    customer: str = ""
    customers: list[str] = field(default_factory=list)
    warehouse: str = ""
    location: str = ""
    plant: str = ""
    production_date: str = ""
    eta: str = ""
    awb: str | None = None
    description: str = ""
    product: str = ""
    sector: str = ""
    trim: str = ""
    size: str = ""
    case_format_lb: float = DEFAULT_CASE_FORMAT_LB
    packed_at: str = ""
    was_normalized: bool = field(default=False, repr=False, compare=False)

    @property
    def total_lbs(self) -> float:
        return self.cases_available * self.case_format_lb

    @property
    def last_update(self) -> str | None:
        return self.status_history[-1].at if self.status_history else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customId": self.custom_id,
            "po": self.po,
            "customerPO": self.customer_po,
            "customer": self.customer,
            "customers": list(self.customers),
            "warehouse": self.warehouse,
            "location": self.location,
            "plant": self.plant,
            "productionDate": self.production_date,
            "eta": self.eta,
            "awb": self.awb,
            "material": self.material,
            "description": self.description,
            "product": self.product,
            "sector": self.sector,
            "trim": self.trim,
            "size": self.size,
            "caseFormatLb": self.case_format_lb,
            "totalLbs": self.total_lbs,
            "packedAt": self.packed_at,
            "casesOrdered": self.cases_ordered,
            "casesAvailable": self.cases_available,
            "active": self.active,
            "status": self.status,
            "statusHistory": [entry.to_dict() for entry in self.status_history],
            "trackingToken": self.tracking_token,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InventoryLot":
        normalized = False

        token = _str(data, "trackingToken")
        if not token:
            token = new_tracking_token()
            normalized = True

        status = _str(data, "status", STATUS_CONFIRMED) or STATUS_CONFIRMED
        raw_history = data.get("statusHistory")
        if isinstance(raw_history, list) and raw_history:
            history = [StatusEntry.from_dict(h) for h in raw_history if isinstance(h, dict)]
        else:
            history = []
        if not history or history[-1].status != status:
            history.append(StatusEntry(at=now_z(), status=status))
            normalized = True

        cases_available = max(_int(data, "casesAvailable"), 0)
        active = cases_available > 0
        if data.get("active") != active:
            normalized = True

        customer = _str(data, "customer")
        customers = data.get("customers")
        if not isinstance(customers, list):
            customers = [customer] if customer else []

        return cls(
            id=_str(data, "id"),
            custom_id=_str(data, "customId"),
            po=_str(data, "po"),
            customer_po=_str(data, "customerPO"),
            customer=customer,
            customers=[str(c) for c in customers],
            warehouse=_str(data, "warehouse"),
            location=_str(data, "location"),
            plant=_str(data, "plant"),
            production_date=_str(data, "productionDate"),
            eta=_str(data, "eta"),
            awb=data.get("awb") or None,
            material=_str(data, "material"),
            description=_str(data, "description"),
            product=_str(data, "product"),
            sector=_str(data, "sector"),
            trim=_str(data, "trim"),
            size=_str(data, "size"),
            case_format_lb=_float(data, "caseFormatLb", DEFAULT_CASE_FORMAT_LB),
            packed_at=_str(data, "packedAt"),
            cases_ordered=_int(data, "casesOrdered"),
            cases_available=cases_available,
            active=active,
            status=status,
            status_history=history,
            tracking_token=token,
            was_normalized=normalized,
        )


@dataclass
class OrderLine:
    id: str
    material: str
    description: str
    cases: int
    format_lb: float = DEFAULT_CASE_FORMAT_LB
    product: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material": self.material,
            "description": self.description,
            "cases": self.cases,
            "formatLb": self.format_lb,
            "product": self.product,
        }


@dataclass
class SalesOrder:
    id: str
    customer_name: str
    lines: list[OrderLine]
    tracking_token: str
    demand_id: str = ""
    ship_to: str = ""
    customer_po: str = ""
    pickup_date: str = ""
    sales_rep: str = ""
    incoterm: str = ""
    week: str = ""
    progress_status: str = ORDER_PROGRESS_PENDING
    was_normalized: bool = field(default=False, repr=False, compare=False)

    @property
    def display_customer(self) -> str:
        return self.customer_name or self.ship_to or DEFAULT_CUSTOMER_NAME

    @property
    def total_cases(self) -> int:
        return sum(line.cases for line in self.lines)

    def find_line(self, line_id: str) -> OrderLine | None:
        return next((line for line in self.lines if line.id == line_id), None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "demandId": self.demand_id,
            "customerName": self.customer_name,
            "shipTo": self.ship_to,
            "customerPO": self.customer_po,
            "pickupDate": self.pickup_date,
            "salesRep": self.sales_rep,
            "incoterm": self.incoterm,
            "week": self.week,
            "progressStatus": self.progress_status,
            "lines": [line.to_dict() for line in self.lines],
            "trackingToken": self.tracking_token,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SalesOrder":
        normalized = False

        raw_lines = data.get("lines")
        if not isinstance(raw_lines, list) or not raw_lines:
            # Legacy single-line orders carried the line on the order itself
            raw_lines = [{
                "material": data.get("material"),
                "description": data.get("description"),
                "cases": data.get("cases"),
            }]
            normalized = True

        lines = []
        for raw in raw_lines:
            if not isinstance(raw, dict):
                normalized = True
                continue
            line_id = _str(raw, "id")
            if not line_id:
                line_id = new_line_id()
                normalized = True
            description = _str(raw, "description")
            format_lb = _float(raw, "formatLb")
            if format_lb <= 0:
                format_lb = case_format_from_description(description)
                normalized = True
            lines.append(OrderLine(
                id=line_id,
                material=_str(raw, "material"),
                description=description,
                cases=_int(raw, "cases"),
                format_lb=format_lb,
                product=_str(raw, "product"),
            ))

        ship_to = _str(data, "shipTo")
        customer_name = _str(data, "customerName")
        if not customer_name:
            customer_name = ship_to or DEFAULT_CUSTOMER_NAME
            normalized = True

        token = _str(data, "trackingToken")
        if not token:
            token = new_order_tracking_token()
            normalized = True

        return cls(
            id=_str(data, "id"),
            demand_id=_str(data, "demandId"),
            customer_name=customer_name,
            ship_to=ship_to,
            customer_po=_str(data, "customerPO"),
            pickup_date=_str(data, "pickupDate"),
            sales_rep=_str(data, "salesRep"),
            incoterm=_str(data, "incoterm"),
            week=_str(data, "week"),
            progress_status=_str(data, "progressStatus", ORDER_PROGRESS_PENDING) or ORDER_PROGRESS_PENDING,
            lines=lines,
            tracking_token=token,
            was_normalized=normalized,
        )


@dataclass(frozen=True)
class AllocationItem:
    lot_id: str
    lot_po: str
    material: str
    product: str
    cases: int

    def to_dict(self) -> dict:
        return {
            "lotId": self.lot_id,
            "lotPo": self.lot_po,
            "material": self.material,
            "product": self.product,
            "cases": self.cases,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AllocationItem":
        return cls(
            lot_id=_str(data, "lotId"),
            lot_po=_str(data, "lotPo"),
            material=_str(data, "material"),
            product=_str(data, "product"),
            cases=_int(data, "cases"),
        )


@dataclass
class Assignment:
    id: str
    date: str
    type: str
    customer: str
    state: str
    items: tuple[AllocationItem, ...] = ()
    sales_order_id: str | None = None
    spot_client: str | None = None
    spot_ref: str | None = None
    was_normalized: bool = field(default=False, repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        return self.state == ASSIGNMENT_STATE_ACTIVE

    @property
    def total_cases(self) -> int:
        return sum(item.cases for item in self.items)

    def holds_lot(self, lot_id: str) -> bool:
        return any(item.lot_id == lot_id for item in self.items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "type": self.type,
            "salesOrderId": self.sales_order_id,
            "spotClient": self.spot_client,
            "spotRef": self.spot_ref,
            "customer": self.customer,
            "state": self.state,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Assignment":
        raw_items = data.get("items")
        normalized = not isinstance(raw_items, list)
        items = sanitize_items(raw_items)
        return cls(
            id=_str(data, "id"),
            date=_str(data, "date"),
            type=_str(data, "type", ASSIGNMENT_TYPE_ORDER) or ASSIGNMENT_TYPE_ORDER,
            sales_order_id=data.get("salesOrderId") or None,
            spot_client=data.get("spotClient") or None,
            spot_ref=data.get("spotRef") or None,
            customer=_str(data, "customer"),
            state=_str(data, "state", ASSIGNMENT_STATE_ACTIVE) or ASSIGNMENT_STATE_ACTIVE,
            items=items,
            was_normalized=normalized,
        )


def sanitize_items(raw_items: Any) -> tuple[AllocationItem, ...]:
    """Allocation items from untrusted JSON: absent or malformed -> empty."""
    if not isinstance(raw_items, list):
        return ()
    return tuple(AllocationItem.from_dict(item) for item in raw_items if isinstance(item, dict))


def sanitize_assignment_dict(data: Any) -> dict | None:
    """Snapshot-boundary variant of Assignment.from_dict that stays a dict."""
    if not isinstance(data, dict):
        return None
    items = data.get("items")
    return {**data, "items": items if isinstance(items, list) else []}
