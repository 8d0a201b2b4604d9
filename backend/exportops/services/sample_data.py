# Overview: Sample lots and sales orders for local development and demos.

from __future__ import annotations

from ..time_utils import now_z
from .identifier_service import new_line_id, new_order_tracking_token, new_tracking_token
from .store import ARCHIVED_LOTS_KEY, ASSIGNMENTS_KEY, INVENTORY_KEY, SALES_ORDERS_KEY, Repository


def sample_inventory() -> list[dict]:
    now = now_z()
    return [
        {
            "id": "row-1", "customId": "1001", "location": "Miami, FL", "warehouse": "MIA-1",
            "plant": "Magallanes", "productionDate": "2025-11-03", "eta": "2025-11-10",
            "po": "40538940", "customerPO": "PO-AC-001", "awb": None,
            "customer": "AquaChile MIA", "customers": ["AquaChile MIA"],
            "material": "1113199", "description": "SA TD Pr 4-5 LB#Bo Cp 35LB AQ", "product": "TD 4-5 35",
            "sector": "SA", "trim": "TD", "size": "4-5", "caseFormatLb": 35, "packedAt": "FILLETS",
            "casesOrdered": 175, "casesAvailable": 175, "active": True, "status": "IN_TRANSIT",
            "statusHistory": [{"at": now, "status": "CONFIRMED"}, {"at": now, "status": "IN_TRANSIT"}],
            "trackingToken": new_tracking_token(),
        },
        {
            "id": "row-2", "customId": "1002", "location": "Miami, FL", "warehouse": "MIA-2",
            "plant": "Cardonal", "productionDate": "2025-11-04", "eta": "2025-11-12",
            "po": "40538656", "customerPO": "PO-SM-002", "awb": "123-45678901",
            "customer": "Santa Monica", "customers": ["Santa Monica"],
            "material": "1113198", "description": "SA TD Pr 3-4 LB#Bo Cp 35LB AQ", "product": "TD 3-4 35",
            "sector": "SA", "trim": "TD", "size": "3-4", "caseFormatLb": 35, "packedAt": "FILLETS",
            "casesOrdered": 65, "casesAvailable": 65, "active": True, "status": "CONFIRMED",
            "statusHistory": [{"at": now, "status": "CONFIRMED"}],
            "trackingToken": new_tracking_token(),
        },
        {
            "id": "row-3", "customId": "2001", "location": "Seattle, WA", "warehouse": "SEA-1",
            "plant": "Puerto Montt", "productionDate": "2025-11-01", "eta": "2025-11-10",
            "po": "40550012", "customerPO": "PO-PSG-009", "awb": "016-98765432",
            "customer": "Pacific Seafood Group", "customers": ["Pacific Seafood Group"],
            "material": "1113201", "description": "SA TD Pr 2-3 LB#Bo Cp 10LB AQ", "product": "TD 2-3 10",
            "sector": "SA", "trim": "TD", "size": "2-3", "caseFormatLb": 10, "packedAt": "FILLETS",
            "casesOrdered": 120, "casesAvailable": 120, "active": True, "status": "READY_FOR_DELIVERY",
            "statusHistory": [
                {"at": now, "status": "CONFIRMED"},
                {"at": now, "status": "IN_TRANSIT"},
                {"at": now, "status": "READY_FOR_DELIVERY"},
            ],
            "trackingToken": new_tracking_token(),
        },
    ]


def sample_sales_orders() -> list[dict]:
    return [
        {
            "id": "DEM-1001", "demandId": "DEM-1001", "customerName": "AquaChile MIA",
            "shipTo": "AquaChile MIA", "customerPO": "PO-AC-001", "pickupDate": "2025-11-12",
            "salesRep": "Carlos Rivas", "incoterm": "FOB", "week": "W46", "progressStatus": "PENDING",
            "lines": [{
                "id": new_line_id(), "material": "1113199",
                "description": "SA TD Pr 4-5 LB#Bo Cp 35LB AQ", "cases": 120, "formatLb": 35,
            }],
            "trackingToken": new_order_tracking_token(),
        },
        {
            "id": "DEM-1002", "demandId": "DEM-1002", "customerName": "Santa Monica",
            "shipTo": "Santa Monica", "customerPO": "PO-SM-002", "pickupDate": "2025-11-13",
            "salesRep": "Maria Lopez", "incoterm": "CFR", "week": "W46", "progressStatus": "PENDING",
            "lines": [
                {
                    "id": new_line_id(), "material": "1113198",
                    "description": "SA TD Pr 3-4 LB#Bo Cp 35LB AQ", "cases": 80, "formatLb": 35,
                },
                {
                    "id": new_line_id(), "material": "1113201",
                    "description": "SA TD Pr 2-3 LB#Bo Cp 10LB AQ", "cases": 40, "formatLb": 10,
                },
            ],
            "trackingToken": new_order_tracking_token(),
        },
    ]


def seed_sample_data(repository: Repository, *, force: bool = False) -> bool:
    """Write the sample collections when the store is empty (or force=True)."""
    store = repository.store
    if not force and (store.load(INVENTORY_KEY) or store.load(SALES_ORDERS_KEY)):
        return False
    store.save_many({
        INVENTORY_KEY: sample_inventory(),
        SALES_ORDERS_KEY: sample_sales_orders(),
        ASSIGNMENTS_KEY: [],
        ARCHIVED_LOTS_KEY: [],
    })
    return True
