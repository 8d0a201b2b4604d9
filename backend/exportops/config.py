# backend/exportops/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/exportops.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///exportops.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Remote snapshot API (create-tracking / get-tracking). Empty = local table.
    TRACKING_API_BASE = os.environ.get("TRACKING_API_BASE", "")
    TRACKING_SYNC_ENABLED = _env_flag("TRACKING_SYNC_ENABLED", "true")
    TRACKING_SYNC_ASYNC = _env_flag("TRACKING_SYNC_ASYNC", "true")
    TRACKING_TIMEOUT_SECONDS = float(os.environ.get("TRACKING_TIMEOUT_SECONDS", "5"))

    # Origin used when building public /track/<token> links
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "https://tracking.example")

    CORS_ALLOWED_ORIGINS = os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )

    SEED_SAMPLE_DATA = _env_flag("SEED_SAMPLE_DATA", "false")

    # Refuse pipeline moves back to an earlier stage (overlays always allowed)
    STATUS_FORWARD_ONLY = _env_flag("STATUS_FORWARD_ONLY", "false")
