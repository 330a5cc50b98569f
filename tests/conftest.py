"""Pytest configuration for order service tests."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.database import Base, get_db, get_session_factory, make_engine
from app.email_service import build_order_confirmation
from app.main import app
from app.metrics import metrics_collector
from app.models import Product, StoreSettings, User
from app.orders_api import get_dispatcher
from app.search_index import build_order_document
from app.side_effects import OutboxDispatcher
from shopcore.core.config import ShopConfig, get_config, set_config


# ---------------------------------------------------------------------------
# Configuration and metrics isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def shop_config():
    """Deterministic config for every test: no backoff, admin key set, no collaborators."""
    previous = get_config()
    config = ShopConfig(order_retry_backoff_ms=0, admin_api_key="test-admin-key")
    set_config(config)
    yield config
    set_config(previous)


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics_collector.reset()
    yield
    metrics_collector.reset()


# ---------------------------------------------------------------------------
# Database: one SQLite file per test
# ---------------------------------------------------------------------------

@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class Seeder:
    """Writes fixture rows through their own committed sessions."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _add(self, obj):
        with self.session_factory() as session:
            session.add(obj)
            session.commit()

    def settings(self, tax_percentage=16.0, tax_enabled=None, store_enabled=True, **methods):
        delivery = {
            "pickupEnabled": True,
            "homeDeliveryEnabled": True,
            "shippingEnabled": True,
            "arrangeWithSellerEnabled": True,
        }
        delivery.update(methods)
        self._add(StoreSettings(
            store_enabled=store_enabled,
            tax_percentage=tax_percentage,
            tax_enabled=tax_enabled,
            delivery_methods=delivery,
        ))

    def user(self, user_id="user-1", first_name="Ana", last_name="Lopez", email="ana@example.com"):
        self._add(User(id=user_id, first_name=first_name, last_name=last_name, email=email))

    def product(
        self,
        product_id="prod-1",
        name="Table Lamp",
        price=25.0,
        stock=10,
        status="active",
        sku="LAMP-001",
        variants=None,
        dynamic_prices=None,
    ):
        self._add(Product(
            id=product_id,
            name=name,
            price=price,
            stock=stock,
            status=status,
            sku=sku,
            variants=variants,
            has_dynamic_pricing=bool(dynamic_prices),
            dynamic_prices=dynamic_prices,
        ))


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeSearchClient:
    def __init__(self):
        self.saved = {}
        self.removed = []
        self.fail = False

    def sync_order(self, order_id, record):
        if self.fail:
            raise RuntimeError("search index unavailable")
        self.saved[order_id] = build_order_document(order_id, record)

    def remove_order(self, order_id):
        self.removed.append(order_id)


class FakeEmailSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_order_confirmation(self, record):
        if self.fail:
            raise ConnectionError("smtp unavailable")
        self.sent.append(build_order_confirmation(record))


@pytest.fixture
def search():
    return FakeSearchClient()


@pytest.fixture
def email():
    return FakeEmailSender()


@pytest.fixture
def dispatcher(session_factory, search, email, shop_config):
    return OutboxDispatcher(session_factory, search_client=search, email_sender=email, config=shop_config)


@pytest.fixture
def client(session_factory, dispatcher):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------

def _line(product_id="prod-1", quantity=2, unit_price=25.0, product_name="Table Lamp", **extra):
    item = {
        "productId": product_id,
        "productName": product_name,
        "quantity": quantity,
        "unitPrice": unit_price,
        "totalPrice": round(unit_price * quantity, 2),
    }
    item.update(extra)
    return item


def _order(
    items=None,
    user_id="user-1",
    tax_percentage=16.0,
    tax_amount=None,
    shipping_cost=0.0,
    delivery_method="pickup",
    **extra,
):
    items = items if items is not None else [_line()]
    subtotal = round(sum(item["totalPrice"] for item in items), 2)
    if tax_amount is None:
        tax_amount = round(subtotal * tax_percentage / 100, 2)
    body = {
        "userId": user_id,
        "items": items,
        "deliveryMethod": delivery_method,
        "paymentMethod": "cash",
        "totals": {
            "subtotal": subtotal,
            "taxAmount": tax_amount,
            "taxPercentage": tax_percentage,
            "shippingCost": shipping_cost,
            "total": round(subtotal + tax_amount + shipping_cost, 2),
            "itemCount": sum(item["quantity"] for item in items),
        },
    }
    body.update(extra)
    return body


@pytest.fixture
def order_line():
    return _line


@pytest.fixture
def order_body():
    return _order
