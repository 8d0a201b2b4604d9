# Overview: Service-layer operations for sales orders (demand); lines are replaced wholesale.

from __future__ import annotations

from ..domain import (
    ORDER_PROGRESS_COMPLETED,
    ORDER_PROGRESS_PENDING,
    SalesOrder,
)
from ..errors import NotFoundError, ValidationError
from ..validation import FieldPolicy, clean_order_lines, validate_payload
from .concurrency import retry_on_conflict
from .identifier_service import new_demand_id, new_order_tracking_token
from .store import Repository


ORDER_POLICY = FieldPolicy(
    fields={
        "demandId": "str",
        "customerName": "str",
        "shipTo": "str",
        "customerPO": "str",
        "pickupDate": "date",
        "salesRep": "str",
        "incoterm": "str",
        "week": "str",
        "progressStatus": "str",
        "lines": "list",
    },
    required_on_create={"lines"},
    max_lengths={"demandId": 64, "customerPO": 64, "incoterm": 16, "week": 16},
)

PROGRESS_STATUSES = (ORDER_PROGRESS_PENDING, ORDER_PROGRESS_COMPLETED)


def _check_progress(patch: dict) -> None:
    progress = patch.get("progressStatus")
    if progress and progress not in PROGRESS_STATUSES:
        raise ValidationError(f"progressStatus must be one of: {', '.join(PROGRESS_STATUSES)}")


class OrderService:
    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def list_orders(self) -> list[SalesOrder]:
        return self.repository.sales_orders()

    def get_order(self, order_id: str) -> SalesOrder:
        order = self.repository.find_order(order_id)
        if order is None:
            raise NotFoundError(f"Sales order {order_id} not found")
        return order

    @retry_on_conflict()
    def create_order(self, payload: dict) -> SalesOrder:
        """
        New sales order. The id is the demandId when given, else DEM-<random>;
        line ids and the order tracking token are generated.
        """
        patch = validate_payload(payload=payload, policy=ORDER_POLICY, partial=False)
        _check_progress(patch)
        patch["lines"] = clean_order_lines(patch.get("lines"))

        orders = self.repository.sales_orders()
        order_id = patch.get("demandId") or new_demand_id()
        if any(o.id == order_id for o in orders):
            raise ValidationError(f"Sales order {order_id} already exists")

        record = {key: value for key, value in patch.items() if value is not None}
        record.update(id=order_id, demandId=order_id, trackingToken=new_order_tracking_token())
        order = SalesOrder.from_dict(record)
        order.was_normalized = False

        self.repository.save(sales_orders=[order, *orders])
        return order

    @retry_on_conflict()
    def update_order(self, order_id: str, payload: dict) -> SalesOrder:
        """Header fields are patched; when lines are sent they replace the old ones."""
        patch = validate_payload(payload=payload, policy=ORDER_POLICY, partial=True)
        _check_progress(patch)
        if "demandId" in patch and patch["demandId"] != order_id:
            raise ValidationError("demandId cannot be changed")
        if "lines" in patch:
            patch["lines"] = clean_order_lines(patch["lines"])

        orders = self.repository.sales_orders()
        idx = next((i for i, o in enumerate(orders) if o.id == order_id), None)
        if idx is None:
            raise NotFoundError(f"Sales order {order_id} not found")

        record = orders[idx].to_dict()
        record.update({key: ("" if value is None else value) for key, value in patch.items()})
        order = SalesOrder.from_dict(record)
        order.was_normalized = False
        orders[idx] = order

        self.repository.save(sales_orders=orders)
        return order

    @retry_on_conflict()
    def delete_order(self, order_id: str) -> SalesOrder:
        """Remove an order. Assignments that reference it are left untouched."""
        orders = self.repository.sales_orders()
        order = next((o for o in orders if o.id == order_id), None)
        if order is None:
            raise NotFoundError(f"Sales order {order_id} not found")
        self.repository.save(sales_orders=[o for o in orders if o.id != order_id])
        return order
