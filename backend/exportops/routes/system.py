# backend/exportops/routes/system.py
"""
System health endpoint.

Reports database connectivity, the collection store's working-copy state
and whether snapshot sync is wired.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services.app_services import SYNC_EXTENSION, get_store
from ..time_utils import now_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_store_health() -> dict:
    """
    A store with dirty keys holds changes that never reached the database:
    still operational for this process, so degraded rather than unhealthy.
    """
    store = get_store()
    status_fn = getattr(store, "status", None)
    details = status_fn() if status_fn else {"backend": type(store).__name__}
    if details.get("dirty_keys"):
        return {
            "status": "degraded",
            "warning": f"Unsaved collections: {', '.join(details['dirty_keys'])}",
            "details": details,
        }
    return {"status": "healthy", "details": details}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    store_health = check_store_health()

    all_checks = [database_health, store_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": now_z(),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "store": store_health,
            "tracking_sync": {
                "enabled": SYNC_EXTENSION in current_app.extensions,
                "async": bool(current_app.config.get("TRACKING_SYNC_ASYNC")),
                "remote": bool(current_app.config.get("TRACKING_API_BASE")),
            },
        },
    }

    return response, http_status
