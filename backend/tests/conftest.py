"""
Pytest fixtures for Export Ops backend tests.

Provides an in-memory app per test, a dict-backed store with services wired
to it, and builders for lots and sales orders in their stored JSON shape.
"""

import pytest
from exportops import create_app
from exportops.extensions import db
from exportops.services.ledger_service import AllocationLedger
from exportops.services.pipeline_service import StatusPipeline
from exportops.services.store import (
    ASSIGNMENTS_KEY,
    INVENTORY_KEY,
    SALES_ORDERS_KEY,
    MemoryStore,
    Repository,
)


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'TRACKING_SYNC_ENABLED': False,
    'TRACKING_SYNC_ASYNC': False,
    'TRACKING_API_BASE': '',
    'SEED_SAMPLE_DATA': False,
    'PUBLIC_BASE_URL': 'https://track.test',
    'CORS_ALLOWED_ORIGINS': 'http://localhost:5173',
}


@pytest.fixture(scope='function')
def app():
    """Create application for testing (fresh in-memory database per test)."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def memory_store():
    return MemoryStore()


@pytest.fixture(scope='function')
def repository(memory_store):
    return Repository(memory_store)


@pytest.fixture(scope='function')
def ledger(repository):
    return AllocationLedger(repository)


@pytest.fixture(scope='function')
def pipeline(repository):
    return StatusPipeline(repository)


def make_lot(lot_id: str = "lot-1", cases: int = 175, **overrides) -> dict:
    """Lot in stored JSON shape; casesOrdered == casesAvailable == cases."""
    lot = {
        "id": lot_id,
        "po": f"PO-{lot_id}",
        "customerPO": "CPO-1",
        "customer": "Acme Seafood",
        "customers": ["Acme Seafood"],
        "warehouse": "MIA-1",
        "material": "1113199",
        "description": "SA TD Pr 4-5 LB#Bo Cp 35LB AQ",
        "product": "TD 4-5 35",
        "sector": "SA",
        "trim": "TD",
        "size": "4-5",
        "caseFormatLb": 35,
        "casesOrdered": cases,
        "casesAvailable": cases,
        "active": cases > 0,
        "status": "CONFIRMED",
        "statusHistory": [{"at": "2025-11-01T10:00:00Z", "status": "CONFIRMED"}],
        "trackingToken": f"tok-{lot_id}",
    }
    lot.update(overrides)
    return lot


def make_order(order_id: str = "DEM-1", lines=None, **overrides) -> dict:
    order = {
        "id": order_id,
        "demandId": order_id,
        "customerName": "Acme Seafood",
        "shipTo": "Acme Seafood Miami",
        "customerPO": "CPO-1",
        "progressStatus": "PENDING",
        "lines": lines if lines is not None else [
            {"id": "line-1", "material": "1113199", "description": "SA TD 35LB", "cases": 120, "formatLb": 35},
        ],
        "trackingToken": f"order-{order_id}",
    }
    order.update(overrides)
    return order


def seed(store, inventory=None, sales_orders=None, assignments=None):
    """Write collections straight into a store (bypasses the services)."""
    collections = {}
    if inventory is not None:
        collections[INVENTORY_KEY] = inventory
    if sales_orders is not None:
        collections[SALES_ORDERS_KEY] = sales_orders
    if assignments is not None:
        collections[ASSIGNMENTS_KEY] = assignments
    store.save_many(collections)
