"""
Shared fixtures for the pharmacy marketplace test suite.

- a throw-away SQLite file database (tables recreated per test)
- fakeredis behind the checkout LockService
- Celery in eager mode, so notification tasks run in-process
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="pharmacy-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["LOW_STOCK_THRESHOLD"] = "5"
os.environ["DB_RETRY_ATTEMPTS"] = "10"

from decimal import Decimal
from typing import List, Tuple

import fakeredis
import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from app.api.deps import get_lock_service, get_notification_service
from app.data.database import Base, SessionLocal, engine
from app.data.models import PharmacyModel, ProductModel, UserModel
from app.services.cart_service import CartService
from app.services.lock_service import LockService
from app.services.order_service import OrderService
from app.services.stock_ledger import StockLedger


class RecordingNotifier:
    """Stands in for NotificationService, keeps what would have been sent."""

    def __init__(self):
        self.sent: List[Tuple[int, str, str, str]] = []

    def notify(self, target_id, target_type, title, message):
        self.sent.append((target_id, target_type, title, message))

    def titles(self, target_type=None):
        return [t for _, kind, t, _ in self.sent if target_type is None or kind == target_type]


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db):
    u = UserModel(id=1, name="Alice")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def other_user(db):
    u = UserModel(id=2, name="Bob")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def pharmacy(db):
    p = PharmacyModel(name="Central Pharmacy", location="Main Street 1")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def other_pharmacy(db):
    p = PharmacyModel(name="Corner Pharmacy", location="Side Street 7")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def make_product(db, pharmacy):
    def _make(name="Paracetamol", price="10.00", stock=5, pharmacy_id=None):
        product = ProductModel(
            pharmacy_id=pharmacy_id or pharmacy.id,
            name=name,
            category="pain relief",
            price=Decimal(price),
            stock_quantity=stock,
        )
        db.add(product)
        db.commit()
        return product

    return _make


def stock_of(db, product_id: int) -> int:
    db.expire_all()
    return db.get(ProductModel, product_id).stock_quantity


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def lock_service(fake_redis):
    return LockService(client=fake_redis)


@pytest.fixture
def ledger(db, notifier):
    return StockLedger(db, notifier, low_stock_threshold=5)


@pytest.fixture
def cart_service(db, ledger):
    return CartService(db, ledger)


@pytest.fixture
def order_service(db, lock_service, notifier):
    return OrderService(db, lock_service, notifier)


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def client(db, lock_service, notifier):
    app = create_app()
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_notification_service] = lambda: notifier
    with TestClient(app) as c:
        yield c


def as_user(user_id: int) -> dict:
    return {"X-Actor-Id": str(user_id), "X-Actor-Type": "User"}


def as_pharmacy(pharmacy_id: int) -> dict:
    return {"X-Actor-Id": str(pharmacy_id), "X-Actor-Type": "Pharmacy"}
