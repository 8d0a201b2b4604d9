# Overview: Flask API routes for sales orders; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..errors import ExportOpsError, NotFoundError, error_response
from ..services.app_services import get_ledger, get_order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
def list_orders():
    orders = get_order_service().list_orders()
    return {"items": [order.to_dict() for order in orders], "count": len(orders)}


@orders_bp.get("/<order_id>")
def get_order(order_id: str):
    try:
        order = get_order_service().get_order(order_id)
    except ExportOpsError as e:
        return error_response(e)
    return order.to_dict()


@orders_bp.post("")
def create_order():
    payload = request.get_json(silent=True) or {}
    try:
        order = get_order_service().create_order(payload)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return {"error": "Internal server error"}, 500
    return order.to_dict(), 201


@orders_bp.put("/<order_id>")
def update_order(order_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        order = get_order_service().update_order(order_id, payload)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sales order %s", order_id)
        return {"error": "Internal server error"}, 500
    return order.to_dict()


@orders_bp.delete("/<order_id>")
def delete_order(order_id: str):
    try:
        get_order_service().delete_order(order_id)
    except ExportOpsError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sales order %s", order_id)
        return {"error": "Internal server error"}, 500
    return {"ok": True}, 200


@orders_bp.get("/<order_id>/remaining")
def remaining_per_line(order_id: str):
    """Cases still to allocate per line (ACTIVE assignments only)."""
    try:
        order = get_order_service().get_order(order_id)
    except NotFoundError as e:
        return error_response(e)
    ledger = get_ledger()
    return {
        "order_id": order.id,
        "lines": [
            {
                "line_id": line.id,
                "material": line.material,
                "cases": line.cases,
                "remaining": ledger.remaining_for_line(order.id, line),
            }
            for line in order.lines
        ],
    }
