# Overview: Flask API routes for the allocation ledger; parses input and returns JSON responses.

# backend/exportops/routes/assignments.py
"""
Assignment routes.

Every mutation is all-or-nothing: a 400 (validation / insufficient stock)
or 409 (wrong state) leaves inventory and assignments untouched.
"""
from flask import Blueprint, current_app, request

from ..domain import ASSIGNMENT_STATES
from ..errors import ExportOpsError, ValidationError, error_response
from ..services.app_services import get_ledger
from ..validation import clean_allocation_items, coerce_int


assignments_bp = Blueprint("assignments", __name__, url_prefix="/api/assignments")


@assignments_bp.get("")
def list_assignments():
    """
    Query params:
    - state: ACTIVE | VOID (optional)
    """
    state = request.args.get("state")
    if state and state not in ASSIGNMENT_STATES:
        return {"error": f"state must be one of: {', '.join(sorted(ASSIGNMENT_STATES))}"}, 400
    assignments = get_ledger().list_assignments(state=state)
    return {"items": [a.to_dict() for a in assignments], "count": len(assignments)}


@assignments_bp.get("/<assignment_id>")
def get_assignment(assignment_id: str):
    try:
        assignment = get_ledger().get_assignment(assignment_id)
    except ExportOpsError as e:
        return error_response(e)
    return assignment.to_dict()


@assignments_bp.post("")
def create_assignment():
    """
    Body:
    {
      "type": "ORDER" | "SPOT",
      "salesOrderId": "DEM-1001",          (ORDER)
      "spotClient": "...", "spotRef": "...", (SPOT)
      "items": [{"lotId": "...", "cases": 10}, ...]
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        items = clean_allocation_items(payload.get("items"))
        assignment = get_ledger().create_assignment(
            str(payload.get("type") or "").strip().upper(),
            items,
            sales_order_id=payload.get("salesOrderId"),
            spot_client=payload.get("spotClient"),
            spot_ref=payload.get("spotRef"),
        )
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create assignment")
        return {"error": "Internal server error"}, 500
    return assignment.to_dict(), 201


@assignments_bp.post("/quick")
def quick_assign():
    """Body: {"lotId", "salesOrderId", "lineId", "cases"}"""
    payload = request.get_json(silent=True) or {}
    try:
        cases = coerce_int("cases", payload.get("cases"))
        result = get_ledger().quick_assign(
            str(payload.get("lotId") or ""),
            str(payload.get("salesOrderId") or ""),
            str(payload.get("lineId") or ""),
            cases,
        )
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quick-assign")
        return {"error": "Internal server error"}, 500
    return result.to_dict(), 201


@assignments_bp.post("/<assignment_id>/void")
def void_assignment(assignment_id: str):
    try:
        assignment = get_ledger().void_assignment(assignment_id)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void assignment %s", assignment_id)
        return {"error": "Internal server error"}, 500
    return assignment.to_dict()


@assignments_bp.post("/<assignment_id>/reactivate")
def reactivate_assignment(assignment_id: str):
    try:
        assignment = get_ledger().reactivate_assignment(assignment_id)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reactivate assignment %s", assignment_id)
        return {"error": "Internal server error"}, 500
    return assignment.to_dict()


@assignments_bp.patch("/<assignment_id>")
def set_assignment_state(assignment_id: str):
    """Body: {"state": "ACTIVE" | "VOID"}"""
    payload = request.get_json(silent=True) or {}
    try:
        state = payload.get("state")
        if not isinstance(state, str):
            raise ValidationError("state is required")
        assignment = get_ledger().set_state(assignment_id, state.strip().upper())
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change state of assignment %s", assignment_id)
        return {"error": "Internal server error"}, 500
    return assignment.to_dict()


@assignments_bp.delete("/<assignment_id>")
def delete_assignment(assignment_id: str):
    try:
        get_ledger().delete_assignment(assignment_id)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete assignment %s", assignment_id)
        return {"error": "Internal server error"}, 500
    return {"ok": True}, 200
