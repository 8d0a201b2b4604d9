# Overview: Collection store interface, its memory/SQL implementations, and the typed repository.

"""
Export Ops Collection Store (authoritative)

- Each entity collection is one JSON list addressed by a fixed key.
- Every mutation reads, modifies and writes the whole collection.
- save_many() writes several collections as one unit; observers are told
  which keys changed after every save, successful or not.
- SqlStore reads the database on every load. A write that fails because the
  database is unavailable keeps a working copy, marks the key dirty and
  raises StorageError; the next successful save clears it.
- Compare-and-swap: SqlStore refuses to overwrite a collection whose
  version moved since the writing thread last read it (WriteConflictError,
  never swallowed). Services re-read and retry on conflict.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..domain import Assignment, InventoryLot, SalesOrder
from ..errors import StorageError, WriteConflictError
from ..extensions import db
from ..models import CollectionBlob
from .concurrency import locked_row_query, run_with_retry


logger = logging.getLogger(__name__)

INVENTORY_KEY = "inventory"
SALES_ORDERS_KEY = "sales_orders"
ASSIGNMENTS_KEY = "assignments"
ARCHIVED_LOTS_KEY = "archived_lot_ids"

COLLECTION_KEYS = (INVENTORY_KEY, SALES_ORDERS_KEY, ASSIGNMENTS_KEY, ARCHIVED_LOTS_KEY)

ChangeCallback = Callable[[set], None]


class Store:
    """Key -> JSON list store with change notification."""

    def __init__(self) -> None:
        self._subscribers: list[ChangeCallback] = []

    def load(self, key: str) -> list:
        raise NotImplementedError

    def _write(self, collections: dict[str, list]) -> None:
        raise NotImplementedError

    def reload(self) -> None:
        """Forget any working copy; the next load reads the backing store."""

    def save(self, key: str, items: list) -> None:
        self.save_many({key: items})

    def save_many(self, collections: dict[str, list]) -> None:
        for key in collections:
            if key not in COLLECTION_KEYS:
                raise ValueError(f"unknown collection key: {key}")
        try:
            self._write(collections)
        finally:
            self._notify(set(collections))

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register an observer; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, keys: set) -> None:
        for callback in list(self._subscribers):
            try:
                callback(keys)
            except Exception:
                logger.exception("Store observer failed for keys %s", sorted(keys))


class MemoryStore(Store):
    """Dict-backed store for tests and scripting."""

    def __init__(self, initial: dict[str, list] | None = None) -> None:
        super().__init__()
        self._data: dict[str, list] = {}
        for key, items in (initial or {}).items():
            self._data[key] = copy.deepcopy(items)

    def load(self, key: str) -> list:
        return copy.deepcopy(self._data.get(key, []))

    def _write(self, collections: dict[str, list]) -> None:
        for key, items in collections.items():
            self._data[key] = copy.deepcopy(items)


class SqlStore(Store):
    """
    CollectionBlob-backed store (one row per key) using db.session.

    Every load reads the row again, so writes from other processes are seen
    on the next read. The version each thread last read is what its next save
    compares against: a row that moved in between raises WriteConflictError
    and the caller re-reads. Only keys whose save failed for another reason
    (database unavailable) are served from the working copy until a save
    succeeds.
    """

    def __init__(self) -> None:
        super().__init__()
        self._pending: dict[str, list] = {}
        self._versions: dict[str, int | None] = {}
        self._local = threading.local()
        self.dirty_keys: set[str] = set()

    def _read_versions(self) -> dict[str, int | None]:
        versions = getattr(self._local, "versions", None)
        if versions is None:
            versions = self._local.versions = {}
        return versions

    def load(self, key: str) -> list:
        if key in self.dirty_keys and key in self._pending:
            return copy.deepcopy(self._pending[key])
        try:
            row = db.session.get(CollectionBlob, key, populate_existing=True)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(f"failed to read collection {key}") from exc
        version = row.version_id if row else None
        self._read_versions()[key] = version
        self._versions[key] = version
        return copy.deepcopy(row.payload or []) if row else []

    def reload(self) -> None:
        self._pending.clear()
        self._versions.clear()
        self._read_versions().clear()
        self.dirty_keys.clear()

    def _drop(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._pending.pop(key, None)
            self.dirty_keys.discard(key)

    def _write(self, collections: dict[str, list]) -> None:
        read_versions = self._read_versions()

        def _op() -> dict[str, int]:
            rows = {}
            for key, items in collections.items():
                row = locked_row_query(CollectionBlob, key=key).first()
                # Keys this thread never read are written unconditionally
                checked = key in read_versions
                expected = read_versions.get(key)
                if row is None:
                    if checked and expected is not None:
                        raise WriteConflictError(f"collection {key} was removed by another writer")
                    row = CollectionBlob(key=key, payload=copy.deepcopy(items))
                    db.session.add(row)
                else:
                    if checked and row.version_id != expected:
                        raise WriteConflictError(f"collection {key} was changed by another writer")
                    row.payload = copy.deepcopy(items)
                rows[key] = row
            db.session.flush()
            versions = {key: row.version_id for key, row in rows.items()}
            db.session.commit()
            return versions

        try:
            versions = run_with_retry(_op, label="collection save")
        except WriteConflictError:
            db.session.rollback()
            self._drop(collections)
            raise
        except StaleDataError as exc:
            db.session.rollback()
            self._drop(collections)
            raise WriteConflictError(f"collections {sorted(collections)} were changed by another writer") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            for key, items in collections.items():
                self._pending[key] = copy.deepcopy(items)
            self.dirty_keys.update(collections)
            raise StorageError(f"failed to save collections {sorted(collections)}") from exc

        read_versions.update(versions)
        self._versions.update(versions)
        self._drop(collections)

    def status(self) -> dict:
        return {
            "dirty_keys": sorted(self.dirty_keys),
            "versions": dict(self._versions),
        }


class Repository:
    """
    Typed access to the collections of one store.

    Loading normalises records; when normalisation filled anything in, the
    collection is written back once so synthesised tokens stay stable.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    # -- reads ---------------------------------------------------------------

    def _load_records(self, key: str, factory) -> list:
        raw = [item for item in self.store.load(key) if isinstance(item, dict)]
        records = [factory(item) for item in raw]
        if any(r.was_normalized for r in records):
            for record in records:
                record.was_normalized = False
            try:
                self._persist({key: [r.to_dict() for r in records]})
            except WriteConflictError:
                # Another writer got there first; its copy is normalised on its next read
                logger.info("Skipped normalisation write-back for %s after a conflict", key)
        return records

    def inventory(self) -> list[InventoryLot]:
        return self._load_records(INVENTORY_KEY, InventoryLot.from_dict)

    def sales_orders(self) -> list[SalesOrder]:
        return self._load_records(SALES_ORDERS_KEY, SalesOrder.from_dict)

    def assignments(self) -> list[Assignment]:
        return self._load_records(ASSIGNMENTS_KEY, Assignment.from_dict)

    def archived_lot_ids(self) -> list[str]:
        return [str(item) for item in self.store.load(ARCHIVED_LOTS_KEY) if item]

    def find_lot(self, lot_id: str) -> InventoryLot | None:
        return next((lot for lot in self.inventory() if lot.id == lot_id), None)

    def find_order(self, order_id: str) -> SalesOrder | None:
        return next((order for order in self.sales_orders() if order.id == order_id), None)

    def find_assignment(self, assignment_id: str) -> Assignment | None:
        return next((a for a in self.assignments() if a.id == assignment_id), None)

    def snapshot(self) -> dict:
        """Current collections in wire shape (the publishable snapshot)."""
        return {
            "inventory": [lot.to_dict() for lot in self.inventory()],
            "salesOrders": [order.to_dict() for order in self.sales_orders()],
            "assignments": [a.to_dict() for a in self.assignments()],
        }

    # -- writes --------------------------------------------------------------

    def save(
        self,
        *,
        inventory: Iterable[InventoryLot] | None = None,
        sales_orders: Iterable[SalesOrder] | None = None,
        assignments: Iterable[Assignment] | None = None,
        archived_lot_ids: Iterable[str] | None = None,
        strict: bool = False,
    ) -> None:
        """
        Persist the given collections together.

        strict=False: a StorageError is logged and swallowed; the working copy
        keeps the new state for this process. WriteConflictError always
        propagates so the caller can re-read.
        """
        collections: dict[str, list] = {}
        if inventory is not None:
            collections[INVENTORY_KEY] = [lot.to_dict() for lot in inventory]
        if sales_orders is not None:
            collections[SALES_ORDERS_KEY] = [order.to_dict() for order in sales_orders]
        if assignments is not None:
            collections[ASSIGNMENTS_KEY] = [a.to_dict() for a in assignments]
        if archived_lot_ids is not None:
            collections[ARCHIVED_LOTS_KEY] = list(archived_lot_ids)
        if not collections:
            return
        if strict:
            self.store.save_many(collections)
        else:
            self._persist(collections)

    def _persist(self, collections: dict[str, list]) -> None:
        try:
            self.store.save_many(collections)
        except StorageError:
            logger.exception("Local store write failed for %s", sorted(collections))
