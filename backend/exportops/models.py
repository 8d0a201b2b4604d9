# backend/exportops/models.py
from __future__ import annotations
from .extensions import db
from .time_utils import to_utc_z, utcnow


class CollectionBlob(db.Model):
    """
    One JSON document per entity collection (inventory, sales_orders,
    assignments, archived_lot_ids), addressed by a fixed key.

    version_id is bumped on every write; SqlStore compares it against the
    version it last saw to detect a second writer.
    """
    __tablename__ = "collection_blobs"

    key = db.Column(db.String(64), primary_key=True)
    payload = db.Column(db.JSON, nullable=False, default=list)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CollectionBlob key={self.key!r} version={self.version_id}>"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "items": len(self.payload or []),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class TrackingSnapshot(db.Model):
    """
    Token-addressable copy of the full operational context for one lot.

    Upserted by tracking token (last writer wins), read back by the public
    tracking link. Columns mirror the remote `trackings` table.
    """
    __tablename__ = "trackings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tracking_token = db.Column(db.String(128), nullable=False, unique=True, index=True)
    inventory = db.Column(db.JSON, nullable=True)
    sales_orders = db.Column(db.JSON, nullable=True)
    assignments = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<TrackingSnapshot token={self.tracking_token!r}>"

    def to_dict(self) -> dict:
        """Response body of GET /api/get-tracking."""
        return {
            "inventory": self.inventory or [],
            "sales_orders": self.sales_orders or [],
            "assignments": self.assignments or [],
        }
