# Overview: Request-time accessors that wire services to the app's store and snapshot source.

from __future__ import annotations

from flask import current_app

from .inventory_service import InventoryService
from .ledger_service import AllocationLedger
from .order_service import OrderService
from .pipeline_service import StatusPipeline, forward_only_guard
from .store import Repository, Store
from .sync_service import SnapshotSource, snapshot_source_from_config


STORE_EXTENSION = "exportops.store"
SOURCE_EXTENSION = "exportops.snapshot_source"
SYNC_EXTENSION = "exportops.tracking_sync"


def get_store() -> Store:
    return current_app.extensions[STORE_EXTENSION]


def get_snapshot_source() -> SnapshotSource:
    source = current_app.extensions.get(SOURCE_EXTENSION)
    if source is None:
        source = snapshot_source_from_config(current_app.config)
        current_app.extensions[SOURCE_EXTENSION] = source
    return source


def get_repository() -> Repository:
    return Repository(get_store())


def get_pipeline() -> StatusPipeline:
    guard = forward_only_guard if current_app.config.get("STATUS_FORWARD_ONLY") else None
    return StatusPipeline(get_repository(), transition_guard=guard)


def get_ledger() -> AllocationLedger:
    return AllocationLedger(get_repository())


def get_inventory_service() -> InventoryService:
    repository = get_repository()
    guard = forward_only_guard if current_app.config.get("STATUS_FORWARD_ONLY") else None
    return InventoryService(repository, StatusPipeline(repository, transition_guard=guard))


def get_order_service() -> OrderService:
    return OrderService(get_repository())
