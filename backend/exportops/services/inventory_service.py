# Overview: Service-layer operations for inventory lots; intake, descriptor edits, deletion and archive.

"""
Export Ops Inventory Invariants (authoritative)

- Intake sets casesOrdered > 0 and 0 <= casesAvailable <= casesOrdered.
- After intake, cases are moved only by the Allocation Ledger; update_lot
  never touches casesOrdered / casesAvailable.
- Status changes go through StatusPipeline.set_status so history stays
  append-only.
- A lot cannot be deleted while an ACTIVE assignment holds cases on it.
- Only DELIVERED lots can be archived; archiving hides a lot from the
  tracking worklist and nothing else.
"""

from __future__ import annotations

from ..domain import (
    InventoryLot,
    STATUS_CONFIRMED,
    STATUS_DELIVERED,
    case_format_from_description,
)
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..time_utils import now_z
from ..validation import FieldPolicy, enforce_rules_lot_intake, validate_payload
from .concurrency import retry_on_conflict
from .identifier_service import new_lot_id, new_tracking_token
from .ledger_service import committed_cases
from .pipeline_service import ALL_STATUSES, INTAKE_STATUSES, StatusPipeline
from .store import Repository


_DESCRIPTOR_FIELDS = {
    "customId": "str",
    "po": "str",
    "customerPO": "str",
    "customer": "str",
    "customers": "list",
    "warehouse": "str",
    "location": "str",
    "plant": "str",
    "productionDate": "date",
    "eta": "date",
    "awb": "str",
    "material": "str",
    "description": "str",
    "product": "str",
    "sector": "str",
    "trim": "str",
    "size": "str",
    "caseFormatLb": "float",
    "packedAt": "str",
}

LOT_CREATE_POLICY = FieldPolicy(
    fields={**_DESCRIPTOR_FIELDS, "casesOrdered": "int", "casesAvailable": "int", "status": "str"},
    required_on_create={"po", "material", "casesOrdered"},
    max_lengths={"po": 64, "customerPO": 64, "material": 64, "awb": 64},
)

LOT_UPDATE_POLICY = FieldPolicy(
    fields={**_DESCRIPTOR_FIELDS, "status": "str"},
    max_lengths=LOT_CREATE_POLICY.max_lengths,
)

# camelCase payload key -> InventoryLot attribute
_ATTRS = {
    "customId": "custom_id",
    "po": "po",
    "customerPO": "customer_po",
    "customer": "customer",
    "customers": "customers",
    "warehouse": "warehouse",
    "location": "location",
    "plant": "plant",
    "productionDate": "production_date",
    "eta": "eta",
    "awb": "awb",
    "material": "material",
    "description": "description",
    "product": "product",
    "sector": "sector",
    "trim": "trim",
    "size": "size",
    "caseFormatLb": "case_format_lb",
    "packedAt": "packed_at",
}

_SEARCH_ATTRS = ("po", "customer_po", "material", "description", "product", "customer", "warehouse")


def _matches(lot: InventoryLot, needle: str) -> bool:
    haystack = " ".join([*(getattr(lot, attr) or "" for attr in _SEARCH_ATTRS), *lot.customers])
    return needle in haystack.lower()


class InventoryService:
    def __init__(self, repository: Repository, pipeline: StatusPipeline) -> None:
        self.repository = repository
        self.pipeline = pipeline

    def list_lots(self, search: str | None = None, include_inactive: bool = False) -> list[InventoryLot]:
        lots = self.repository.inventory()
        if not include_inactive:
            lots = [lot for lot in lots if lot.active]
        needle = (search or "").strip().lower()
        if needle:
            lots = [lot for lot in lots if _matches(lot, needle)]
        return lots

    def get_lot(self, lot_id: str) -> InventoryLot:
        lot = self.repository.find_lot(lot_id)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")
        return lot

    @retry_on_conflict()
    def create_lot(self, payload: dict) -> InventoryLot:
        """
        Lot intake.

        casesAvailable defaults to casesOrdered; status defaults to CONFIRMED
        and seeds the first history entry.
        """
        patch = validate_payload(payload=payload, policy=LOT_CREATE_POLICY, partial=False)
        if patch.get("casesAvailable") is None:
            patch["casesAvailable"] = patch["casesOrdered"]
        enforce_rules_lot_intake(patch)

        status = patch.pop("status", None) or STATUS_CONFIRMED
        if status not in INTAKE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(INTAKE_STATUSES)}")

        record = {key: value for key, value in patch.items() if value is not None}
        if "caseFormatLb" not in record:
            record["caseFormatLb"] = case_format_from_description(record.get("description"))
        if "customers" not in record and record.get("customer"):
            record["customers"] = [record["customer"]]
        record.update(
            id=new_lot_id(),
            status=status,
            statusHistory=[{"at": now_z(), "status": status}],
            trackingToken=new_tracking_token(),
        )
        lot = InventoryLot.from_dict(record)
        lot.was_normalized = False

        inventory = self.repository.inventory()
        self.repository.save(inventory=[lot, *inventory])
        return lot

    @retry_on_conflict()
    def update_lot(self, lot_id: str, payload: dict) -> InventoryLot:
        """Edit descriptors; a changed status is appended through the pipeline."""
        patch = validate_payload(payload=payload, policy=LOT_UPDATE_POLICY, partial=True)
        new_status = patch.pop("status", None)
        if new_status is not None and new_status not in ALL_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ALL_STATUSES)}")

        inventory = self.repository.inventory()
        lot = next((row for row in inventory if row.id == lot_id), None)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")

        if patch:
            for key, value in patch.items():
                attr = _ATTRS[key]
                if key == "customers":
                    value = [str(c).strip() for c in (value or []) if str(c).strip()]
                elif key == "caseFormatLb":
                    if value is None or value <= 0:
                        raise ValidationError("caseFormatLb must be > 0")
                elif key == "awb":
                    value = value or None
                elif value is None:
                    value = ""
                setattr(lot, attr, value)
            self.repository.save(inventory=inventory)

        if new_status and new_status != lot.status:
            lot = self.pipeline.set_status(lot_id, new_status)
        return lot

    @retry_on_conflict()
    def delete_lot(self, lot_id: str) -> InventoryLot:
        inventory = self.repository.inventory()
        lot = next((row for row in inventory if row.id == lot_id), None)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")

        held = committed_cases(lot_id, self.repository.assignments())
        if held > 0:
            raise InvalidStateError(f"Lot {lot_id} has {held} cases held by active assignments")

        archived = self.repository.archived_lot_ids()
        self.repository.save(
            inventory=[row for row in inventory if row.id != lot_id],
            archived_lot_ids=[x for x in archived if x != lot_id],
        )
        return lot

    @retry_on_conflict()
    def archive_lot(self, lot_id: str) -> InventoryLot:
        lot = self.get_lot(lot_id)
        if lot.status != STATUS_DELIVERED:
            raise InvalidStateError(f"Only delivered lots can be archived (lot {lot_id} is {lot.status})")
        archived = self.repository.archived_lot_ids()
        if lot_id not in archived:
            self.repository.save(archived_lot_ids=[*archived, lot_id])
        return lot

    def tracking_worklist(self) -> list[InventoryLot]:
        archived = set(self.repository.archived_lot_ids())
        return [lot for lot in self.repository.inventory() if lot.id not in archived]
