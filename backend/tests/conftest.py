"""
Shared test fixtures for PodOps tests

Provides database setup, fake external collaborators, the production
service and an API client wired to both.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api.v1.deps import get_production_service
from app.core.settings import Settings
from app.db.base import Base
from app.db.session import get_db
from app.exceptions import ExternalSyncError
from app.services.production_service import ProductionService
from tests.factories import reset_sequences


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    import app.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_tables(engine):
    """Drop all tables after testing"""
    Base.metadata.drop_all(bind=engine)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeCommerce:
    """Records commerce platform calls; set fail=True to make every call fail"""

    def __init__(self):
        self.calls = []
        self.fail = False
        self.inventory_items = {}

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.fail:
            raise ExternalSyncError("Shopify", f"{name} failed")

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]

    def fulfill_order(self, store, external_order_id):
        self._record("fulfill_order", store.shop_domain, external_order_id)
        return {"id": "gid://shopify/Fulfillment/1"}

    def cancel_order(self, store, external_order_id, *, refund=True, restock=True, reason="OTHER"):
        self._record("cancel_order", store.shop_domain, external_order_id, refund=refund, restock=restock, reason=reason)

    def create_refund(self, store, external_order_id, line_item_id, quantity, amount=None, *, note=None):
        self._record("create_refund", external_order_id, line_item_id, quantity, amount, note=note)

    def find_inventory_item_by_sku(self, store, sku):
        self._record("find_inventory_item_by_sku", sku)
        return self.inventory_items.get(sku)

    def set_inventory_quantity(self, store, inventory_item_id, location_id, quantity):
        self._record("set_inventory_quantity", inventory_item_id, location_id, quantity)


class FakeShipping:
    """Records shipping provider calls"""

    def __init__(self):
        self.deliveries = []
        self.cancelled = []

    def create_delivery(self, api_key, receiver, address, cod, items_count, reference):
        self.deliveries.append({
            "api_key": api_key,
            "receiver": receiver,
            "address": address,
            "cod": cod,
            "items_count": items_count,
            "reference": reference,
        })
        n = len(self.deliveries)
        return {"delivery_id": f"DLV-{n}", "tracking_number": f"TRK-{n}"}

    def cancel_delivery(self, api_key, delivery_id):
        self.cancelled.append(delivery_id)


class FakeQR:
    """Deterministic tokens, no image rendering"""

    def __init__(self):
        self.issued = 0

    def generate_token(self):
        self.issued += 1
        return f"tok{self.issued:04d}"

    def render_data_url(self, url):
        return f"data:image/png;base64,{url}"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    create_tables(engine)
    reset_sequences()

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables(engine)


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        DEFAULT_BATCH_MAX_CAPACITY=10,
        PUBLIC_BASE_URL="http://podops.test",
    )


@pytest.fixture
def commerce():
    return FakeCommerce()


@pytest.fixture
def shipping():
    return FakeShipping()


@pytest.fixture
def qr():
    return FakeQR()


@pytest.fixture
def service(db_session, commerce, shipping, qr, test_settings):
    """Production service wired to the fakes"""
    return ProductionService(
        db_session,
        commerce=commerce,
        shipping=shipping,
        qr=qr,
        settings=test_settings,
    )


@pytest.fixture
def client(db_session, service):
    """Create a test client with database and service overrides"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_production_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
