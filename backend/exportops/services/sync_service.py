# Overview: Publishes tracking snapshots after local changes and fetches them back for public links.

"""
Snapshot sync (authoritative)

- Publishing is best-effort: a failed publish is logged and never raised to
  the operation that triggered it.
- One publish per distinct lot tracking token, each carrying the full
  inventory, sales orders and assignments captured at change time.
- Snapshots are captured from the store at notification time, so a queued
  publish never sees a later mutation's state.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Protocol

import httpx

from ..errors import ExportOpsError, NotFoundError, StorageError
from .store import ASSIGNMENTS_KEY, INVENTORY_KEY, SALES_ORDERS_KEY, Store
from .tracking_service import get_snapshot, normalize_snapshot, upsert_snapshot


logger = logging.getLogger(__name__)

CREATE_PATH = "/api/create-tracking"
GET_PATH = "/api/get-tracking"

SNAPSHOT_KEYS = frozenset({INVENTORY_KEY, SALES_ORDERS_KEY, ASSIGNMENTS_KEY})


class SnapshotSource(Protocol):
    def publish(self, token: str, inventory: list, sales_orders: list, assignments: list) -> None: ...

    def fetch(self, token: str) -> dict: ...


class SnapshotClient:
    """httpx client for the remote create-tracking / get-tracking API."""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.BaseTransport | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def publish(self, token: str, inventory: list, sales_orders: list, assignments: list) -> None:
        body = {
            "token": token,
            "inventory": inventory,
            "salesOrders": sales_orders,
            "assignments": assignments,
        }
        try:
            with self._client() as client:
                resp = client.post(CREATE_PATH, json=body)
        except httpx.HTTPError as exc:
            raise StorageError(f"create-tracking request failed: {exc}") from exc
        if resp.status_code != 200:
            raise StorageError(f"create-tracking returned {resp.status_code}: {resp.text[:200]}")

    def fetch(self, token: str) -> dict:
        try:
            with self._client() as client:
                resp = client.get(GET_PATH, params={"token": token})
        except httpx.HTTPError as exc:
            raise StorageError(f"get-tracking request failed: {exc}") from exc
        if resp.status_code == 404:
            raise NotFoundError("not found")
        if resp.status_code != 200:
            raise StorageError(f"get-tracking returned {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise StorageError("get-tracking returned invalid JSON") from exc
        return normalize_snapshot(payload)


class LocalSnapshotSource:
    """Same contract as SnapshotClient over this app's own trackings table."""

    def publish(self, token: str, inventory: list, sales_orders: list, assignments: list) -> None:
        upsert_snapshot(token, inventory, sales_orders, assignments)

    def fetch(self, token: str) -> dict:
        return normalize_snapshot(get_snapshot(token).to_dict())


def snapshot_source_from_config(config) -> SnapshotSource:
    base = (config.get("TRACKING_API_BASE") or "").strip()
    if base:
        return SnapshotClient(base, timeout=float(config.get("TRACKING_TIMEOUT_SECONDS", 5)))
    return LocalSnapshotSource()


class SnapshotPublisher:
    def __init__(self, source: SnapshotSource) -> None:
        self.source = source

    def publish_all(self, inventory: list, sales_orders: list, assignments: list) -> int:
        """
        Publish the collections once per distinct lot token.

        Returns the number of successful publishes; failures are logged.
        """
        tokens: list[str] = []
        for lot in inventory:
            token = lot.get("trackingToken") if isinstance(lot, dict) else None
            if token and token not in tokens:
                tokens.append(token)

        published = 0
        for token in tokens:
            try:
                self.source.publish(token, inventory, sales_orders, assignments)
                published += 1
            except ExportOpsError as exc:
                logger.error("Failed to publish tracking snapshot %s: %s", token, exc)
        return published


class TrackingSync:
    """
    Store observer that republishes snapshots when tracked collections change.

    async_mode=True runs publishes on one background worker (in submission
    order); otherwise they run inline in the caller's thread.
    """

    def __init__(self, store: Store, publisher: SnapshotPublisher, *, app=None, async_mode: bool = False) -> None:
        self.store = store
        self.publisher = publisher
        self.app = app
        self.async_mode = async_mode
        self._executor: ThreadPoolExecutor | None = None
        self._unsubscribe = None

    def start(self) -> "TrackingSync":
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.on_change)
        return self

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def capture(self) -> tuple[list, list, list]:
        return (
            self.store.load(INVENTORY_KEY),
            self.store.load(SALES_ORDERS_KEY),
            self.store.load(ASSIGNMENTS_KEY),
        )

    def on_change(self, keys: set) -> Future | int | None:
        if not SNAPSHOT_KEYS & set(keys):
            return None
        inventory, sales_orders, assignments = self.capture()
        if not self.async_mode:
            return self.publisher.publish_all(inventory, sales_orders, assignments)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tracking-sync")
        return self._executor.submit(self._publish_in_context, inventory, sales_orders, assignments)

    def _publish_in_context(self, inventory: list, sales_orders: list, assignments: list) -> int:
        try:
            if self.app is None:
                return self.publisher.publish_all(inventory, sales_orders, assignments)
            with self.app.app_context():
                return self.publisher.publish_all(inventory, sales_orders, assignments)
        except Exception:
            logger.exception("Background tracking publish failed")
            return 0
