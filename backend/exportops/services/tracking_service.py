# Overview: Snapshot storage behind the create-tracking / get-tracking API.

"""
Tracking snapshots (authoritative)

- One row per tracking token; upsert is last-writer-wins and replaces all
  three arrays together.
- normalize_snapshot() is the only place that reconciles the two key
  spellings (sales_orders on the read side, salesOrders on the write side).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..domain import sanitize_assignment_dict
from ..errors import NotFoundError, StorageError
from ..extensions import db
from ..models import TrackingSnapshot
from .concurrency import locked_row_query, run_with_retry


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def normalize_snapshot(payload: Any) -> dict:
    """
    Canonical snapshot dict: {inventory, sales_orders, assignments}.

    Accepts sales_orders or salesOrders, defaults missing arrays to [] and
    gives every assignment an items list.
    """
    if not isinstance(payload, dict):
        payload = {}
    sales_orders = payload.get("sales_orders")
    if sales_orders is None:
        sales_orders = payload.get("salesOrders")
    assignments = [
        a for a in (sanitize_assignment_dict(raw) for raw in _as_list(payload.get("assignments")))
        if a is not None
    ]
    return {
        "inventory": [lot for lot in _as_list(payload.get("inventory")) if isinstance(lot, dict)],
        "sales_orders": [o for o in _as_list(sales_orders) if isinstance(o, dict)],
        "assignments": assignments,
    }


def upsert_snapshot(token: str, inventory: list, sales_orders: list, assignments: list) -> TrackingSnapshot:
    """
    Insert or replace the snapshot stored under token.

    Raises:
        StorageError: the database write failed
    """
    def _op() -> TrackingSnapshot:
        row = locked_row_query(TrackingSnapshot, tracking_token=token).first()
        if row is None:
            row = TrackingSnapshot(tracking_token=token)
            db.session.add(row)
        row.inventory = inventory
        row.sales_orders = sales_orders
        row.assignments = assignments
        db.session.commit()
        return row

    try:
        return run_with_retry(_op, label=f"tracking snapshot {token}")
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError(f"failed to save tracking {token}") from exc


def get_snapshot(token: str) -> TrackingSnapshot:
    """
    Raises:
        NotFoundError: no snapshot under token
        StorageError: the database read failed
    """
    try:
        row = db.session.query(TrackingSnapshot).filter_by(tracking_token=token).first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError(f"failed to fetch tracking {token}") from exc
    if row is None:
        raise NotFoundError("not found")
    return row


def list_tokens() -> list[str]:
    rows = db.session.query(TrackingSnapshot.tracking_token).order_by(TrackingSnapshot.id).all()
    return [token for (token,) in rows]
