# Overview: Flask API routes for inventory lots; parses input and returns JSON responses.

# backend/exportops/routes/inventory.py
"""
Inventory lot routes.

Cases are read-only here after intake: allocation goes through
/api/assignments, status changes through POST /<lot_id>/status.
"""
from flask import Blueprint, current_app, request

from ..errors import ExportOpsError, ValidationError, error_response
from ..services.app_services import get_inventory_service, get_pipeline
from ..services.public_tracking_service import tracking_link
from ..services.pipeline_service import ALL_STATUSES, PIPELINE_STAGES, STATUS_LABELS


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _lot_out(lot) -> dict:
    out = lot.to_dict()
    out["trackingLink"] = tracking_link(lot, current_app.config["PUBLIC_BASE_URL"])
    return out


@inventory_bp.get("")
def list_lots():
    """
    Query params:
    - q: str (optional) - case-insensitive search over PO, material, customers, warehouse...
    - include_inactive: bool (optional) - include lots with no available cases
    """
    search = request.args.get("q")
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    try:
        lots = get_inventory_service().list_lots(search=search, include_inactive=include_inactive)
    except ExportOpsError as e:
        return error_response(e)
    return {"items": [_lot_out(lot) for lot in lots], "count": len(lots)}


@inventory_bp.get("/statuses")
def list_statuses():
    return {
        "pipeline": list(PIPELINE_STAGES),
        "statuses": [{"status": s, "label": STATUS_LABELS[s]} for s in ALL_STATUSES],
    }


@inventory_bp.get("/worklist")
def tracking_worklist():
    """Lots still followed on the tracking board (archived lots hidden)."""
    try:
        lots = get_inventory_service().tracking_worklist()
    except ExportOpsError as e:
        return error_response(e)
    return {"items": [_lot_out(lot) for lot in lots]}


@inventory_bp.get("/<lot_id>")
def get_lot(lot_id: str):
    try:
        lot = get_inventory_service().get_lot(lot_id)
    except ExportOpsError as e:
        return error_response(e)
    return _lot_out(lot)


@inventory_bp.post("")
def create_lot():
    payload = request.get_json(silent=True) or {}
    try:
        lot = get_inventory_service().create_lot(payload)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create lot")
        return {"error": "Internal server error"}, 500
    return _lot_out(lot), 201


@inventory_bp.patch("/<lot_id>")
def update_lot(lot_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        lot = get_inventory_service().update_lot(lot_id, payload)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update lot %s", lot_id)
        return {"error": "Internal server error"}, 500
    return _lot_out(lot)


@inventory_bp.delete("/<lot_id>")
def delete_lot(lot_id: str):
    try:
        get_inventory_service().delete_lot(lot_id)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete lot %s", lot_id)
        return {"error": "Internal server error"}, 500
    return {"ok": True}, 200


@inventory_bp.post("/<lot_id>/status")
def set_lot_status(lot_id: str):
    """
    Append a status to the lot's history.

    Body: {"status": "<one of ALL_STATUSES>"}
    """
    payload = request.get_json(silent=True) or {}
    status = str(payload.get("status") or "").strip()
    try:
        if status not in ALL_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ALL_STATUSES)}")
        lot = get_pipeline().set_status(lot_id, status)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set status for lot %s", lot_id)
        return {"error": "Internal server error"}, 500
    return _lot_out(lot)


@inventory_bp.get("/<lot_id>/history")
def lot_history(lot_id: str):
    try:
        history = get_pipeline().history(lot_id)
    except ExportOpsError as e:
        return error_response(e)
    return {"items": [entry.to_dict() for entry in history]}


@inventory_bp.post("/<lot_id>/archive")
def archive_lot(lot_id: str):
    try:
        lot = get_inventory_service().archive_lot(lot_id)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to archive lot %s", lot_id)
        return {"error": "Internal server error"}, 500
    return _lot_out(lot)
