"""Tests for CheckoutService."""

from decimal import Decimal

import pytest

from shop.data.models.cart import CART_ACTIVE, CART_COMPLETED
from shop.domain.errors import (
    ConcurrentModification,
    GatewayUnavailable,
    OutOfStock,
    ValidationError,
)
from shop.domain.schemas import CheckoutIn
from shop.repos.cart_repo import CartRepo
from shop.repos.order_repo import OrderRepo
from shop.services.cart_service import CartService
from shop.services.checkout_service import CheckoutService

PAYLOAD = {
    "customer": {
        "first_name": " Jan ",
        "last_name": "Kowalski",
        "email": "Jan@Example.com",
        "phone": "+48 600 000 000",
    },
    "shipping_address": {
        "address": "ul. Dluga 1",
        "city": "Krakow",
        "state": "MP",
        "country": "PL",
        "zip_code": "30-001",
    },
}


@pytest.fixture
def filled_cart(db, users, product_client):
    svc = CartService(db, product_client)
    svc.add_item(1, 1, 2)
    svc.add_item(1, 2, 1)
    return CartRepo(db).get_active_cart_by_user(1)


@pytest.fixture
def checkout(db, product_client, gateway):
    return CheckoutService(db, product_client, gateway)


class TestCheckout:
    def test_creates_pending_order_and_completes_cart(self, db, checkout, gateway, filled_cart):
        result = checkout.checkout(1, CheckoutIn(**PAYLOAD))

        assert result["status"] == "pending"
        assert result["amount"] == Decimal("25.00")
        assert result["currency"] == "usd"
        assert result["client_secret"] == f"{result['intent_id']}_secret"

        order = OrderRepo(db).find_by_intent_id(result["intent_id"])
        assert order.order_id == result["order_id"]
        assert order.cart_id == filled_cart.id
        assert order.customer_first_name == "Jan"
        assert order.customer_email == "jan@example.com"
        assert order.billing_address == order.shipping_address
        assert [(i["product_id"], i["name"], i["quantity"]) for i in order.items] == [
            (1, "Keyboard", 2),
            (2, "Mouse", 1),
        ]

        assert filled_cart.status == CART_COMPLETED
        assert gateway.intents[order.intent_id]["idempotency_key"] == f"checkout-{order.order_id}"

    def test_next_add_opens_new_cart(self, db, checkout, product_client, filled_cart):
        checkout.checkout(1, CheckoutIn(**PAYLOAD))

        view = CartService(db, product_client).add_item(1, 2, 1)

        assert view["cart_id"] != filled_cart.id
        assert view["status"] == CART_ACTIVE
        assert view["total"] == Decimal("5.00")

    def test_snapshot_survives_cart_changes(self, db, checkout, product_client, filled_cart):
        result = checkout.checkout(1, CheckoutIn(**PAYLOAD))
        CartService(db, product_client).add_item(1, 1, 5)

        order = OrderRepo(db).find_by_order_id(result["order_id"])
        assert sum(i["quantity"] for i in order.items) == 3

    def test_empty_cart(self, checkout, users):
        with pytest.raises(ValidationError):
            checkout.checkout(1, CheckoutIn(**PAYLOAD))

    def test_below_minimum_charge(self, db, users, product_client, gateway):
        product_client.products[5] = {"id": 5, "name": "Sticker", "price": 0.10, "stock": 9, "status": "active"}
        CartService(db, product_client).add_item(1, 5, 2)

        with pytest.raises(ValidationError):
            CheckoutService(db, product_client, gateway).checkout(1, CheckoutIn(**PAYLOAD))
        assert gateway.intents == {}

    def test_stock_rechecked(self, checkout, product_client, gateway, filled_cart):
        product_client.products[1]["stock"] = 1

        with pytest.raises(OutOfStock):
            checkout.checkout(1, CheckoutIn(**PAYLOAD))
        assert gateway.intents == {}
        assert filled_cart.status == CART_ACTIVE

    def test_gateway_unavailable_leaves_cart_active(self, db, checkout, gateway, filled_cart):
        gateway.create_error = GatewayUnavailable("Payment processor unavailable")

        with pytest.raises(GatewayUnavailable):
            checkout.checkout(1, CheckoutIn(**PAYLOAD))

        assert filled_cart.status == CART_ACTIVE
        assert OrderRepo(db).list_orders(user_id=1)[1] == 0


class TestConcurrentCheckout:
    def test_second_checkout_of_same_cart_is_rejected(
        self, db, session_factory, checkout, product_client, gateway, filled_cart, monkeypatch
    ):
        create_intent = gateway.create_intent
        competitor_errors = []

        def create_with_competitor(**kwargs):
            if not competitor_errors:
                other = session_factory()
                try:
                    CheckoutService(other, product_client, gateway).checkout(1, CheckoutIn(**PAYLOAD))
                except (ValidationError, ConcurrentModification) as e:
                    competitor_errors.append(e)
                finally:
                    other.close()
            return create_intent(**kwargs)

        monkeypatch.setattr(gateway, "create_intent", create_with_competitor)

        result = checkout.checkout(1, CheckoutIn(**PAYLOAD))

        assert result["status"] == "pending"
        assert len(competitor_errors) == 1
        assert len(gateway.intents) == 1
        assert OrderRepo(db).list_orders(user_id=1)[1] == 1

    def test_cart_changed_before_claim(
        self, db, session_factory, checkout, product_client, gateway, filled_cart, monkeypatch
    ):
        fetch_product = product_client.fetch_product
        bumped = []

        def fetch_and_bump(product_id):
            if not bumped:
                other = session_factory()
                try:
                    CartRepo(other).update_cart_version(
                        filled_cart.id, filled_cart.version, {"version": filled_cart.version + 1}
                    )
                    other.commit()
                finally:
                    other.close()
                bumped.append(product_id)
            return fetch_product(product_id)

        monkeypatch.setattr(product_client, "fetch_product", fetch_and_bump)

        with pytest.raises(ConcurrentModification):
            checkout.checkout(1, CheckoutIn(**PAYLOAD))

        assert gateway.intents == {}
        assert OrderRepo(db).list_orders(user_id=1)[1] == 0

    def test_failed_intent_keeps_newer_active_cart(
        self, db, session_factory, checkout, product_client, gateway, filled_cart, monkeypatch
    ):
        def open_new_cart_then_fail(**kwargs):
            other = session_factory()
            try:
                CartService(other, product_client).add_item(1, 2, 1)
            finally:
                other.close()
            raise GatewayUnavailable("Payment processor unavailable")

        monkeypatch.setattr(gateway, "create_intent", open_new_cart_then_fail)

        with pytest.raises(GatewayUnavailable):
            checkout.checkout(1, CheckoutIn(**PAYLOAD))

        db.refresh(filled_cart)
        assert filled_cart.status == CART_COMPLETED
        active = CartRepo(db).get_active_cart_by_user(1)
        assert active.id != filled_cart.id
        assert active.item_count == 1
