# Overview: Allocation ledger; commits lot cases to sales orders and spot sales.

"""
Export Ops Allocation Ledger Invariants (authoritative)

Stock model:
- InventoryLot.cases_available is the free stock of a lot.
- An ACTIVE assignment holds its items' cases; a VOID assignment holds none.
- For every lot: cases_available + ACTIVE committed cases is constant across
  create / void / reactivate / delete.
- active == (cases_available > 0) after every ledger mutation; voiding
  always re-opens the lots it returns stock to.

Business invariants:
- All-or-nothing: a create or reactivate either applies every item or none.
- Stock is re-read and re-checked at mutation time, never taken from an
  earlier read.
- Assignment items are immutable; void/delete reverse them, nothing edits them.
- Exceeding an order line's requested cases is allowed (soft warning only).

Persistence:
- Inventory and assignments are written together after each mutation.
- A write conflict (another writer saved in between) re-runs the whole
  read-check-write; after three conflicts the call fails with 409 and
  nothing is applied.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..domain import (
    AllocationItem,
    Assignment,
    InventoryLot,
    OrderLine,
    ASSIGNMENT_STATE_ACTIVE,
    ASSIGNMENT_STATE_VOID,
    ASSIGNMENT_STATES,
    ASSIGNMENT_TYPE_ORDER,
    ASSIGNMENT_TYPE_SPOT,
    ASSIGNMENT_TYPES,
)
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..time_utils import today_iso
from .concurrency import retry_on_conflict
from .identifier_service import next_sequence_number
from .store import Repository


@dataclass(frozen=True)
class QuickAssignResult:
    assignment: Assignment
    remaining_before: int
    over_allocated: bool

    def to_dict(self) -> dict:
        return {
            "assignment": self.assignment.to_dict(),
            "remaining_before": self.remaining_before,
            "over_allocated": self.over_allocated,
        }


def _summed_cases(pairs: Iterable[tuple[str, int]]) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for lot_id, cases in pairs:
        totals[lot_id] += cases
    return dict(totals)


def _check_stock(lots_by_id: dict[str, InventoryLot], requested: dict[str, int]) -> None:
    for lot_id, cases in requested.items():
        lot = lots_by_id.get(lot_id)
        available = lot.cases_available if lot else 0
        if available < cases:
            raise InsufficientStockError(
                f"Insufficient stock on lot {lot_id}. Available: {available}, requested: {cases}",
                lot_id=lot_id,
                requested=cases,
                available=available,
            )


def _apply_delta(lots_by_id: dict[str, InventoryLot], deltas: dict[str, int], *, reopen: bool) -> None:
    for lot_id, delta in deltas.items():
        lot = lots_by_id.get(lot_id)
        if lot is None:
            # Lot was deleted after the assignment was made; nothing to return to
            continue
        lot.cases_available += delta
        lot.active = True if reopen else lot.cases_available > 0


def remaining_for_line(order_id: str, line: OrderLine, assignments: Iterable[Assignment]) -> int:
    """
    Cases of an order line not yet covered by ACTIVE assignments.

    max(line.cases - ACTIVE cases of line.material under order_id, 0)
    """
    allocated = 0
    for assignment in assignments:
        if not assignment.is_active or assignment.sales_order_id != order_id:
            continue
        allocated += sum(item.cases for item in assignment.items if item.material == line.material)
    return max(line.cases - allocated, 0)


def committed_cases(lot_id: str, assignments: Iterable[Assignment]) -> int:
    """Cases of a lot held by ACTIVE assignments."""
    return sum(
        item.cases
        for assignment in assignments
        if assignment.is_active
        for item in assignment.items
        if item.lot_id == lot_id
    )


class AllocationLedger:
    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    # -- queries -------------------------------------------------------------

    def list_assignments(self, state: str | None = None) -> list[Assignment]:
        assignments = self.repository.assignments()
        if state is None:
            return assignments
        return [a for a in assignments if a.state == state]

    def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self.repository.find_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        return assignment

    def remaining_for_line(self, order_id: str, line: OrderLine) -> int:
        return remaining_for_line(order_id, line, self.repository.assignments())

    def committed_cases(self, lot_id: str) -> int:
        return committed_cases(lot_id, self.repository.assignments())

    # -- mutations -----------------------------------------------------------

    @retry_on_conflict()
    def create_assignment(
        self,
        assignment_type: str,
        items: Sequence[tuple[str, int]],
        *,
        sales_order_id: str | None = None,
        spot_client: str | None = None,
        spot_ref: str | None = None,
    ) -> Assignment:
        """
        Commit cases from one or more lots to a sales order (ORDER) or a spot
        sale (SPOT).

        Raises:
            ValidationError: bad type, empty items, unresolved customer or lot
            InsufficientStockError: any lot lacks the requested cases
        """
        if assignment_type not in ASSIGNMENT_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(sorted(ASSIGNMENT_TYPES))}")
        if not items:
            raise ValidationError("Select at least one lot")
        for lot_id, cases in items:
            if not lot_id:
                raise ValidationError("lotId is required")
            if not isinstance(cases, int) or isinstance(cases, bool) or cases <= 0:
                raise ValidationError(f"cases for lot {lot_id} must be a positive integer")

        if assignment_type == ASSIGNMENT_TYPE_ORDER:
            order = self.repository.find_order(sales_order_id) if sales_order_id else None
            customer = (order.customer_name or order.ship_to) if order else ""
            spot_ref = None
        else:
            customer = (spot_client or "").strip()
            sales_order_id = None
        if not customer:
            raise ValidationError("Customer not found")

        inventory = self.repository.inventory()
        lots_by_id = {lot.id: lot for lot in inventory}
        for lot_id, _ in items:
            if lot_id not in lots_by_id:
                raise ValidationError(f"Lot {lot_id} not found")

        requested = _summed_cases(items)
        _check_stock(lots_by_id, requested)

        assignments = self.repository.assignments()
        assignment = Assignment(
            id=next_sequence_number(a.id for a in assignments),
            date=today_iso(),
            type=assignment_type,
            sales_order_id=sales_order_id,
            spot_client=customer if assignment_type == ASSIGNMENT_TYPE_SPOT else None,
            spot_ref=(spot_ref or "").strip() or None,
            customer=customer,
            state=ASSIGNMENT_STATE_ACTIVE,
            items=tuple(
                AllocationItem(
                    lot_id=lot_id,
                    lot_po=lots_by_id[lot_id].po,
                    material=lots_by_id[lot_id].material,
                    product=lots_by_id[lot_id].product,
                    cases=cases,
                )
                for lot_id, cases in items
            ),
        )

        _apply_delta(lots_by_id, {lot_id: -cases for lot_id, cases in requested.items()}, reopen=False)
        self.repository.save(inventory=inventory, assignments=[assignment, *assignments])
        return assignment

    @retry_on_conflict()
    def void_assignment(self, assignment_id: str) -> Assignment:
        """
        Return an ACTIVE assignment's cases to its lots and mark it VOID.

        Raises:
            NotFoundError: unknown assignment
            InvalidStateError: assignment is not ACTIVE
        """
        assignments = self.repository.assignments()
        assignment = self._find(assignments, assignment_id)
        if assignment.state != ASSIGNMENT_STATE_ACTIVE:
            raise InvalidStateError(f"Assignment {assignment_id} is {assignment.state}, not ACTIVE")

        inventory = self.repository.inventory()
        lots_by_id = {lot.id: lot for lot in inventory}
        _apply_delta(lots_by_id, _summed_cases((i.lot_id, i.cases) for i in assignment.items), reopen=True)

        assignment.state = ASSIGNMENT_STATE_VOID
        self.repository.save(inventory=inventory, assignments=assignments)
        return assignment

    @retry_on_conflict()
    def reactivate_assignment(self, assignment_id: str) -> Assignment:
        """
        Re-commit a VOID assignment's cases, checking current stock first.

        Raises:
            NotFoundError: unknown assignment
            InvalidStateError: assignment is not VOID
            InsufficientStockError: stock was claimed elsewhere meanwhile
        """
        assignments = self.repository.assignments()
        assignment = self._find(assignments, assignment_id)
        if assignment.state != ASSIGNMENT_STATE_VOID:
            raise InvalidStateError(f"Assignment {assignment_id} is {assignment.state}, not VOID")

        inventory = self.repository.inventory()
        lots_by_id = {lot.id: lot for lot in inventory}
        requested = _summed_cases((i.lot_id, i.cases) for i in assignment.items)
        _check_stock(lots_by_id, requested)

        _apply_delta(lots_by_id, {lot_id: -cases for lot_id, cases in requested.items()}, reopen=False)
        assignment.state = ASSIGNMENT_STATE_ACTIVE
        self.repository.save(inventory=inventory, assignments=assignments)
        return assignment

    def set_state(self, assignment_id: str, state: str) -> Assignment:
        if state not in ASSIGNMENT_STATES:
            raise ValidationError(f"state must be one of: {', '.join(sorted(ASSIGNMENT_STATES))}")
        if state == ASSIGNMENT_STATE_VOID:
            return self.void_assignment(assignment_id)
        return self.reactivate_assignment(assignment_id)

    @retry_on_conflict()
    def delete_assignment(self, assignment_id: str) -> Assignment:
        """
        Remove an assignment permanently.

        An ACTIVE assignment returns its cases first, exactly like a void; a
        VOID assignment already returned them and is simply removed.
        """
        assignments = self.repository.assignments()
        assignment = self._find(assignments, assignment_id)
        remaining = [a for a in assignments if a.id != assignment_id]

        if assignment.state == ASSIGNMENT_STATE_ACTIVE:
            inventory = self.repository.inventory()
            lots_by_id = {lot.id: lot for lot in inventory}
            _apply_delta(lots_by_id, _summed_cases((i.lot_id, i.cases) for i in assignment.items), reopen=True)
            self.repository.save(inventory=inventory, assignments=remaining)
        else:
            self.repository.save(assignments=remaining)
        return assignment

    def quick_assign(self, lot_id: str, sales_order_id: str, order_line_id: str, cases: int) -> QuickAssignResult:
        """
        Single-lot ORDER assignment against one order line.

        Over-allocating the line is allowed and reported via over_allocated.

        Raises:
            ValidationError: lot, order or line unresolved, or cases <= 0
            InsufficientStockError: cases exceed the lot's available cases
        """
        lot = self.repository.find_lot(lot_id) if lot_id else None
        order = self.repository.find_order(sales_order_id) if sales_order_id else None
        line = order.find_line(order_line_id) if order and order_line_id else None
        if lot is None or order is None or line is None:
            raise ValidationError("Incomplete information for this assignment (lot, order and line are required)")
        if not isinstance(cases, int) or isinstance(cases, bool) or cases <= 0:
            raise ValidationError("Enter a valid number of cases")
        if cases > lot.cases_available:
            raise InsufficientStockError(
                f"Not enough cases in lot {lot.id}. Available: {lot.cases_available}, requested: {cases}",
                lot_id=lot.id,
                requested=cases,
                available=lot.cases_available,
            )

        remaining_before = self.remaining_for_line(order.id, line)
        assignment = self.create_assignment(
            ASSIGNMENT_TYPE_ORDER,
            [(lot.id, cases)],
            sales_order_id=order.id,
        )
        return QuickAssignResult(
            assignment=assignment,
            remaining_before=remaining_before,
            over_allocated=cases > remaining_before,
        )

    @staticmethod
    def _find(assignments: list[Assignment], assignment_id: str) -> Assignment:
        assignment = next((a for a in assignments if a.id == assignment_id), None)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        return assignment
