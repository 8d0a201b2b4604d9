# Overview: Shipment status pipeline; sole writer of lot status and status history.

"""
Export Ops Status Pipeline

STATE MACHINE (positions, not guards):
    CONFIRMED -> IN_TRANSIT -> READY_FOR_DELIVERY -> DELIVERED (terminal)

Overlay statuses:
    DELAYED, ISSUE_REPORTED report the IN_TRANSIT position for progress and
    grouping; they never move the stage index on their own.

RULES:
1. set_status appends {now, status} and sets status. No transition guard by
   default: operators may move a lot to any status.
2. History is append-only; earlier entries are never edited or removed.
3. The stage order is data (PIPELINE_STAGES); a stricter transition guard
   can be injected without touching the data model.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence

from ..domain import (
    Assignment,
    InventoryLot,
    StatusEntry,
    STATUS_CONFIRMED,
    STATUS_DELAYED,
    STATUS_DELIVERED,
    STATUS_IN_TRANSIT,
    STATUS_ISSUE_REPORTED,
    STATUS_READY_FOR_DELIVERY,
)
from ..errors import InvalidStateError, NotFoundError
from ..time_utils import now_z
from .concurrency import retry_on_conflict
from .store import Repository


PIPELINE_STAGES: tuple[str, ...] = (
    STATUS_CONFIRMED,
    STATUS_IN_TRANSIT,
    STATUS_READY_FOR_DELIVERY,
    STATUS_DELIVERED,
)

STAGE_INDEX: dict[str, int] = {status: idx for idx, status in enumerate(PIPELINE_STAGES)}

OVERLAY_STAGE_MAP: dict[str, str] = {
    STATUS_DELAYED: STATUS_IN_TRANSIT,
    STATUS_ISSUE_REPORTED: STATUS_IN_TRANSIT,
}

ALL_STATUSES: tuple[str, ...] = PIPELINE_STAGES + tuple(OVERLAY_STAGE_MAP)

STATUS_LABELS: dict[str, str] = {
    STATUS_CONFIRMED: "Confirmed",
    STATUS_IN_TRANSIT: "In Transit",
    STATUS_READY_FOR_DELIVERY: "Ready for Delivery",
    STATUS_DELIVERED: "Delivered",
    STATUS_DELAYED: "Delayed",
    STATUS_ISSUE_REPORTED: "Issue Reported",
}

# Initial statuses accepted at lot intake
INTAKE_STATUSES = (STATUS_CONFIRMED, STATUS_IN_TRANSIT)

TransitionGuard = Callable[[InventoryLot, str], None]


def _known_index(status: str) -> int | None:
    mapped = OVERLAY_STAGE_MAP.get(status)
    if mapped is not None:
        return STAGE_INDEX[mapped]
    return STAGE_INDEX.get(status)


def pipeline_index(status: str, history: Iterable[StatusEntry] = ()) -> int:
    """
    Position of a lot in the four-stage pipeline.

    Overlay statuses map to their stage; pipeline stages map to themselves;
    anything else (a status this build does not know, e.g. from a newer
    snapshot) falls back to the newest history entry with a known position,
    then to CONFIRMED.
    """
    idx = _known_index(status)
    if idx is not None:
        return idx
    for entry in reversed(list(history)):
        idx = _known_index(entry.status)
        if idx is not None:
            return idx
    return STAGE_INDEX[STATUS_CONFIRMED]


def lot_pipeline_index(lot: InventoryLot) -> int:
    return pipeline_index(lot.status, lot.status_history)


def pipeline_steps(current_index: int) -> list[dict]:
    """Step list for progress rendering: each stage with done/current flags."""
    return [
        {
            "status": status,
            "label": STATUS_LABELS[status],
            "index": idx,
            "done": idx <= current_index,
            "current": idx == current_index,
        }
        for idx, status in enumerate(PIPELINE_STAGES)
    ]


def stage_for_assignment(assignment: Assignment, lots_by_id: dict[str, InventoryLot]) -> int:
    """
    Earliest stage across the lots an assignment draws from.

    Lots missing from the collection count as CONFIRMED; an assignment with
    no items sits at CONFIRMED.
    """
    if not assignment.items:
        return STAGE_INDEX[STATUS_CONFIRMED]
    stages = []
    for item in assignment.items:
        lot = lots_by_id.get(item.lot_id)
        stages.append(lot_pipeline_index(lot) if lot else STAGE_INDEX[STATUS_CONFIRMED])
    return min(stages)


def forward_only_guard(lot: InventoryLot, new_status: str) -> None:
    """
    Stricter transition policy: overlays are always allowed, pipeline stages
    never move backwards from the lot's current position.
    """
    if new_status in OVERLAY_STAGE_MAP:
        return
    target = STAGE_INDEX.get(new_status)
    if target is None:
        raise InvalidStateError(f"Unknown status '{new_status}'")
    current = lot_pipeline_index(lot)
    if target < current:
        raise InvalidStateError(
            f"Cannot move lot {lot.id} from {PIPELINE_STAGES[current]} back to {new_status}"
        )


class StatusPipeline:
    def __init__(self, repository: Repository, transition_guard: TransitionGuard | None = None) -> None:
        self.repository = repository
        self.transition_guard = transition_guard

    @retry_on_conflict()
    def set_status(self, lot_id: str, new_status: str) -> InventoryLot:
        """
        Append {now, new_status} to the lot's history and make it current.

        Raises:
            NotFoundError: lot_id is not in the inventory collection
            InvalidStateError: an injected transition guard refused the move
        """
        inventory = self.repository.inventory()
        lot = next((row for row in inventory if row.id == lot_id), None)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")

        if self.transition_guard is not None:
            self.transition_guard(lot, new_status)

        lot.status_history = [*lot.status_history, StatusEntry(at=now_z(), status=new_status)]
        lot.status = new_status

        self.repository.save(inventory=inventory)
        return lot

    def history(self, lot_id: str) -> Sequence[StatusEntry]:
        lot = self.repository.find_lot(lot_id)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")
        return tuple(lot.status_history)
