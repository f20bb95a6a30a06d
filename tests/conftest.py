"""Pytest fixtures for shop tests."""

import json
import os
import uuid
from contextlib import contextmanager
from decimal import Decimal

# przed importem shop - settings czytaja env przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from shop.data.database import get_db, init_db, make_engine
from shop.data.models.order import OrderModel
from shop.data.models.user import UserModel
from shop.domain.errors import (
    NotFound,
    RefundExceedsAvailable,
    SignatureVerificationFailed,
)
from shop.repos.order_repo import OrderRepo
from shop.services.admin_service import ACTIONS
from shop.services.lock_service import LockService
from shop.services.payment_gateway import IntentResult, RefundResult

SIGNATURE = "t=1,v1=test"

PRODUCTS = {
    1: {"id": 1, "name": "Keyboard", "price": 10.00, "stock": 10, "status": "active"},
    2: {"id": 2, "name": "Mouse", "price": 5.00, "stock": 5, "status": "active"},
    3: {"id": 3, "name": "Monitor", "price": 899.00, "stock": 0, "status": "active"},
    4: {"id": 4, "name": "Webcam", "price": 129.00, "stock": 7, "status": "inactive"},
}


class FakeProductClient:
    def __init__(self, products=None):
        self.products = {k: dict(v) for k, v in (products or PRODUCTS).items()}

    def fetch_product(self, product_id: int) -> dict:
        if product_id not in self.products:
            raise NotFound(f"Product {product_id} not found")
        return dict(self.products[product_id])


class FakeGateway:
    """In-memory stand-in for PaymentGateway with the same method signatures."""

    def __init__(self):
        self.intents = {}
        self.refunds = []
        self.canceled = []
        self.refund_error = None
        self.create_error = None

    def create_intent(self, amount, currency, customer, shipping_address, order_id, user_id,
                      idempotency_key, item_count=None):
        if self.create_error:
            raise self.create_error
        intent_id = f"pi_{uuid.uuid4().hex[:16]}"
        self.intents[intent_id] = {
            "id": intent_id,
            "status": "requires_payment_method",
            "amount": int(Decimal(amount) * 100),
            "currency": currency,
            "metadata": {"order_id": order_id, "user_id": str(user_id)},
            "idempotency_key": idempotency_key,
        }
        return IntentResult(
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret",
            customer_id="cus_test",
            status="requires_payment_method",
        )

    def retrieve_intent(self, intent_id):
        return self.intents[intent_id]

    def cancel_intent(self, intent_id):
        self.canceled.append(intent_id)
        return {"id": intent_id, "status": "canceled"}

    def refund(self, intent_id, amount_minor, reason, idempotency_key, available_minor=None):
        if available_minor is not None and amount_minor > available_minor:
            raise RefundExceedsAvailable("Refund amount exceeds available amount")
        if self.refund_error:
            raise self.refund_error
        refund = RefundResult(
            refund_id=f"re_{len(self.refunds) + 1}",
            status="succeeded",
            amount_minor=amount_minor,
        )
        self.refunds.append(
            {"intent_id": intent_id, "amount_minor": amount_minor, "reason": reason,
             "idempotency_key": idempotency_key, "refund_id": refund.refund_id}
        )
        return refund

    def verify_webhook(self, payload, signature):
        if signature != SIGNATURE:
            raise SignatureVerificationFailed("No signatures found matching the expected signature")
        return json.loads(payload)


class FakeRedis:
    """Just enough of redis.Redis for LockService: SET NX EX and the release script."""

    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def eval(self, script, numkeys, key, owner):
        if self.store.get(key) == owner:
            del self.store[key]
            return 1
        return 0


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def payment_succeeded(self, user_id, order_id):
        self.sent.append((user_id, order_id, "payment_succeeded"))

    def cancellation_processed(self, user_id, order_id, action):
        self.sent.append((user_id, order_id, f"cancellation_{ACTIONS[action]}"))


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'shop.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def product_client():
    return FakeProductClient()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def lock_service(redis_client):
    return LockService(client=redis_client)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def users(db):
    customer = UserModel(id=1, name="Jan", email="jan@example.com", role="customer")
    other = UserModel(id=2, name="Anna", email="anna@example.com", role="customer")
    admin = UserModel(id=99, name="Admin", email="admin@example.com", role="admin")
    db.add_all([customer, other, admin])
    db.commit()
    return {"customer": customer, "other": other, "admin": admin}


@pytest.fixture
def make_order(db, users):
    """Tworzy zamowienie bezposrednio w repo, opcjonalnie w zadanym statusie."""

    def _make(amount="100.00", status="pending", user_id=1, **extra):
        repo = OrderRepo(db)
        fields = dict(
            user_id=user_id,
            intent_id=f"pi_{uuid.uuid4().hex[:16]}",
            amount=Decimal(amount),
            currency="usd",
            items=[{"product_id": 1, "name": "Keyboard", "price": amount, "quantity": 1}],
            customer_first_name="Jan",
            customer_last_name="Kowalski",
            customer_email="jan@example.com",
            shipping_address={
                "address": "ul. Dluga 1",
                "city": "Krakow",
                "state": "MP",
                "country": "PL",
                "zip_code": "30-001",
            },
        )
        fields.update(extra)
        order = repo.create_order(OrderModel(**fields))
        if status != "pending":
            repo.apply_changes(order, {"status": status})
        return order

    return _make


@pytest.fixture
def app(session_factory, gateway, product_client, lock_service, notifier):
    from shop.main import create_app

    app = create_app(
        gateway=gateway,
        product_client=product_client,
        lock_service=lock_service,
        notifier=notifier,
        create_tables=False,
    )

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
def client(app, users):
    return TestClient(app)


@contextmanager
def held_lock(redis_client, order_id):
    """Symuluje lock trzymany przez inny proces."""
    key = f"order:{order_id}:refund-lock"
    redis_client.store[key] = "someone-else"
    try:
        yield
    finally:
        redis_client.store.pop(key, None)


def webhook_body(event_id, event_type, intent_id, **intent_fields):
    intent = {"id": intent_id, "object": "payment_intent"}
    intent.update(intent_fields)
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": intent}})

