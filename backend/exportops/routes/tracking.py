# Overview: Snapshot CRUD API (create-tracking / get-tracking) and the public /track/<token> route.

# backend/exportops/routes/tracking.py
"""
Tracking routes.

The snapshot API is called cross-origin by every dashboard instance, so it
answers OPTIONS itself and always sends permissive CORS headers. Methods are
dispatched by hand so unsupported ones get a JSON 405 instead of Flask's HTML.

The public route never reveals why a token failed to resolve.
"""
import json

from flask import Blueprint, current_app, request

from ..errors import ExportOpsError, NotFoundError, StorageError
from ..services.app_services import get_repository, get_snapshot_source
from ..services.public_tracking_service import build_tracking_view, resolve_snapshot
from ..services.tracking_service import get_snapshot, normalize_snapshot, upsert_snapshot


tracking_bp = Blueprint("tracking", __name__, url_prefix="/api")
public_bp = Blueprint("public_tracking", __name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _reply(body, status: int = 200):
    return body, status, CORS_HEADERS


def _preflight_or_405(allowed: str):
    if request.method == "OPTIONS":
        return "", 200, CORS_HEADERS
    if request.method != allowed:
        return _reply({"error": "method not allowed"}, 405)
    return None


@tracking_bp.route("/create-tracking", methods=ALL_METHODS)
def create_tracking():
    """
    Upsert the snapshot for a token (last writer wins).

    Body: {"token": str, "inventory": [...], "salesOrders": [...], "assignments": [...]}
    """
    early = _preflight_or_405("POST")
    if early is not None:
        return early

    raw = request.get_data(cache=True, as_text=True)
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except ValueError:
        return _reply({"error": "invalid JSON body"}, 400)
    if not isinstance(payload, dict):
        payload = {}

    token = payload.get("token")
    if not token or not isinstance(token, str):
        return _reply({"error": "token is required"}, 400)

    snapshot = normalize_snapshot(payload)
    try:
        upsert_snapshot(token, snapshot["inventory"], snapshot["sales_orders"], snapshot["assignments"])
    except StorageError:
        current_app.logger.exception("Failed to save tracking %s", token)
        return _reply({"error": "failed to save tracking"}, 500)
    return _reply({"ok": True})


@tracking_bp.route("/get-tracking", methods=ALL_METHODS)
def get_tracking():
    """Query params: token (required). Returns {inventory, sales_orders, assignments}."""
    early = _preflight_or_405("GET")
    if early is not None:
        return early

    token = request.args.get("token")
    if not token:
        return _reply({"error": "token is required"}, 400)

    try:
        row = get_snapshot(token)
    except NotFoundError:
        return _reply({"error": "not found"}, 404)
    except StorageError:
        current_app.logger.exception("Failed to fetch tracking %s", token)
        return _reply({"error": "failed to fetch tracking"}, 500)
    return _reply(row.to_dict())


@public_bp.get("/track/<token>")
def public_tracking(token: str):
    try:
        snapshot = resolve_snapshot(token, get_repository(), get_snapshot_source())
        view = build_tracking_view(token, snapshot)
    except NotFoundError:
        return {"error": "invalid link"}, 404
    except ExportOpsError as e:
        current_app.logger.warning("Tracking link %s could not be resolved: %s", token, e)
        return {"error": "invalid link"}, 404
    except Exception:
        current_app.logger.exception("Failed to resolve tracking link %s", token)
        return {"error": "invalid link"}, 404
    return view
