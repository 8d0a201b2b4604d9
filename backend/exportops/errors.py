# Overview: Domain error taxonomy shared by services, routes and the CLI.

from __future__ import annotations


class ExportOpsError(Exception):
    """Base class for every domain error raised by the services."""

    http_status = 500


class ValidationError(ExportOpsError, ValueError):
    """400-level input problem (missing field, unresolved reference)."""

    http_status = 400


class InsufficientStockError(ValidationError):
    """Requested cases exceed the cases currently available on a lot."""

    def __init__(self, message: str, *, lot_id: str | None = None,
                 requested: int | None = None, available: int | None = None):
        super().__init__(message)
        self.lot_id = lot_id
        self.requested = requested
        self.available = available


class InvalidStateError(ExportOpsError):
    """409-level: operation not allowed in the record's current state."""

    http_status = 409


class NotFoundError(ExportOpsError, LookupError):
    """Lot, order, assignment or tracking token does not exist."""

    http_status = 404


class StorageError(ExportOpsError):
    """Local store or remote snapshot persistence failed."""

    http_status = 503


class WriteConflictError(ExportOpsError):
    """Another writer changed a collection after this unit of work read it."""

    http_status = 409


def error_response(exc: ExportOpsError):
    """Translate a domain error into the (body, status) pair routes return."""
    body = {"error": str(exc)}
    if isinstance(exc, InsufficientStockError) and exc.lot_id is not None:
        body["lot_id"] = exc.lot_id
        body["requested"] = exc.requested
        body["available"] = exc.available
    return body, exc.http_status
