# Overview: Flask API routes for dashboard reports; parses input and returns JSON responses.

from flask import Blueprint, request

from ..errors import ExportOpsError, error_response
from ..services.app_services import get_repository
from ..services.reporting_service import (
    awb_feed,
    category_summary,
    dashboard_aggregates,
    dashboard_kpis,
    operations_inbox,
)


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/kpis")
def kpis_report():
    return dashboard_kpis(repository=get_repository())


@reports_bp.get("/aggregates")
def aggregates_report():
    return dashboard_aggregates(repository=get_repository())


@reports_bp.get("/categories")
def categories_report():
    return {"items": category_summary(repository=get_repository())}


@reports_bp.get("/inbox")
def inbox_report():
    """
    Query params:
    - status: pipeline status (optional) - keep entries at that earliest stage
    - sort: eta | customer (default eta)
    """
    try:
        entries = operations_inbox(
            repository=get_repository(),
            status_filter=request.args.get("status") or None,
            sort=request.args.get("sort", "eta"),
        )
    except ExportOpsError as e:
        return error_response(e)
    return {"items": entries}


@reports_bp.get("/awb-feed")
def awb_feed_report():
    feed = awb_feed(repository=get_repository(), warehouse=request.args.get("warehouse") or None)
    return {"items": feed}
