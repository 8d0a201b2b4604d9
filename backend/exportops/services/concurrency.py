# Overview: Row locking and retry helpers for collection and snapshot writes.

from __future__ import annotations

import logging
import time
from functools import wraps

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import WriteConflictError
from ..extensions import db


logger = logging.getLogger(__name__)


def locked_row_query(model, **filters):
    """
    Query for a single row, refreshed from the database and locked for update.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the version_id column still
    catches concurrent writers there.
    """
    return db.session.query(model).filter_by(**filters).populate_existing().with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, label: str = "write"):
    """
    Run a unit of work that commits, retrying transient lock failures.

    OperationalError (locked database, deadlock) and StaleDataError (row
    version moved between read and flush) roll back and retry with
    exponential backoff. Anything else propagates on the first failure.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying %s after lock conflict (attempt %d/%d)", label, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))


def retry_on_conflict(attempts: int = 3):
    """
    Re-run a read-check-write service method when its save hits a write conflict.

    Each attempt must re-read the collections it checks; the last conflict
    propagates as WriteConflictError (409).
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            for attempt in range(attempts):
                try:
                    return f(*args, **kwargs)
                except WriteConflictError:
                    if attempt >= attempts - 1:
                        raise
                    logger.info("Write conflict in %s, re-reading (attempt %d/%d)", f.__name__, attempt + 1, attempts)
        return decorated_function
    return decorator
