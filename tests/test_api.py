"""Tests for the FastAPI routers."""

from decimal import Decimal

import pytest

from shop.domain.errors import GatewayUnavailable
from tests.conftest import SIGNATURE, webhook_body
from tests.test_checkout import PAYLOAD

CUSTOMER = {"user_id": 1}
ADMIN = {"user_id": 99}


def add(client, product_id, quantity, user_id=1):
    return client.post(
        "/cart/items",
        params={"user_id": user_id},
        json={"product_id": product_id, "quantity": quantity},
    )


def send_webhook(client, event_id, event_type, intent_id, signature=SIGNATURE, **fields):
    return client.post(
        "/webhooks/stripe",
        content=webhook_body(event_id, event_type, intent_id, **fields),
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


class TestHealthAndUsers:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_create_and_get_user(self, client):
        response = client.post("/users/", json={"id": 5, "name": "Ola", "email": "OLA@example.com"})
        assert response.status_code == 200
        assert response.json() == {"id": 5, "name": "Ola", "email": "ola@example.com", "role": "customer"}

        assert client.get("/users/5").json()["name"] == "Ola"
        assert client.get("/users/404").status_code == 404

    def test_invalid_user_payload(self, client):
        assert client.post("/users/", json={"id": 0, "name": ""}).status_code == 422


class TestCartRoutes:
    def test_cart_flow(self, client):
        assert add(client, 1, 2).status_code == 200
        response = add(client, 2, 1)
        data = response.json()

        assert Decimal(data["total"]) == Decimal("25.00")
        assert data["item_count"] == 3

        line_id = data["items"][0]["id"]
        response = client.put(f"/cart/items/{line_id}", params=CUSTOMER, json={"quantity": 3})
        assert Decimal(response.json()["total"]) == Decimal("35.00")

        summary = client.get("/cart/summary", params=CUSTOMER).json()
        assert summary["item_count"] == 4

        response = client.delete(f"/cart/items/{line_id}", params=CUSTOMER)
        assert Decimal(response.json()["total"]) == Decimal("5.00")

        response = client.delete("/cart", params=CUSTOMER)
        assert response.json()["items"] == []

    def test_empty_cart(self, client):
        data = client.get("/cart", params=CUSTOMER).json()
        assert data["cart_id"] is None
        assert data["items"] == []

    def test_errors(self, client):
        assert add(client, 3, 1).status_code == 400
        assert add(client, 404, 1).status_code == 404
        assert add(client, 1, 1, user_id=12345).status_code == 404
        assert client.get("/cart").status_code == 422
        assert client.put("/cart/items/1", params=CUSTOMER, json={"quantity": 0}).status_code == 422
        assert client.put("/cart/items/999", params=CUSTOMER, json={"quantity": 1}).status_code == 404

    def test_checkout(self, client, gateway):
        add(client, 1, 2)
        response = client.post("/cart/checkout", params=CUSTOMER, json=PAYLOAD)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert Decimal(data["amount"]) == Decimal("20.00")
        assert data["client_secret"].startswith(data["intent_id"])

        assert client.get("/cart", params=CUSTOMER).json()["cart_id"] is None

    def test_checkout_gateway_down(self, client, gateway):
        add(client, 1, 1)
        gateway.create_error = GatewayUnavailable("Payment processor unavailable")

        assert client.post("/cart/checkout", params=CUSTOMER, json=PAYLOAD).status_code == 503


class TestOrderRoutes:
    def test_list_and_get(self, client, make_order):
        order = make_order()
        make_order(user_id=2)

        data = client.get("/orders", params=CUSTOMER).json()
        assert [o["order_id"] for o in data["data"]] == [order.order_id]
        assert data["pagination"] == {
            "total": 1, "page": 1, "limit": 10, "total_pages": 1,
            "has_next": False, "has_prev": False,
        }

        assert client.get(f"/orders/{order.order_id}", params=CUSTOMER).status_code == 200
        assert client.get(f"/orders/{order.order_id}", params={"user_id": 2}).status_code == 404

    def test_confirm(self, client, gateway, make_order):
        order = make_order()
        gateway.intents[order.intent_id] = {"id": order.intent_id, "status": "succeeded"}

        response = client.post(
            f"/orders/confirm/{order.intent_id}",
            params=CUSTOMER,
            json={"payment_details": {"last4": "4242", "brand": "visa"}},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "succeeded"
        assert response.json()["payment_details"] == {"last4": "4242", "brand": "visa"}

    def test_cancel_pending(self, client, make_order):
        order = make_order()
        response = client.post(f"/orders/{order.order_id}/cancel", params=CUSTOMER, json={"reason": "oops"})

        assert response.status_code == 200
        assert response.json()["status"] == "canceled"
        assert client.post(f"/orders/{order.order_id}/cancel", params=CUSTOMER).status_code == 409

    def test_cancel_request(self, client, make_order):
        paid = make_order(status="succeeded")
        pending = make_order()

        response = client.post(
            f"/orders/{paid.order_id}/cancel-request",
            params=CUSTOMER,
            json={"reason": "wrong size"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancellation_requested"

        response = client.post(f"/orders/{pending.order_id}/cancel-request", params=CUSTOMER, json={})
        assert response.status_code == 409


class TestWebhookRoute:
    def test_succeeded_then_duplicate(self, client, make_order, notifier):
        order = make_order()

        first = send_webhook(client, "evt_1", "payment_intent.succeeded", order.intent_id)
        second = send_webhook(client, "evt_1", "payment_intent.succeeded", order.intent_id)

        assert first.status_code == 200
        assert first.json()["duplicate"] is False
        assert second.json()["duplicate"] is True
        assert len(notifier.sent) == 1

    def test_bad_signature(self, client, db, make_order):
        order = make_order()
        response = send_webhook(
            client, "evt_1", "payment_intent.succeeded", order.intent_id, signature="forged"
        )

        assert response.status_code == 400
        db.refresh(order)
        assert order.status == "pending"

    def test_failed_then_succeeded_conflict(self, client, make_order):
        order = make_order()
        send_webhook(client, "evt_1", "payment_intent.payment_failed", order.intent_id)

        response = send_webhook(client, "evt_2", "payment_intent.succeeded", order.intent_id)
        assert response.status_code == 409

    def test_unknown_intent(self, client):
        response = send_webhook(client, "evt_1", "payment_intent.succeeded", "pi_nope")
        assert response.status_code == 404


class TestAdminRoutes:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/admin/orders"),
            ("get", "/admin/cancellation-requests"),
            ("get", "/admin/carts/1"),
        ],
    )
    def test_customer_is_forbidden(self, client, method, path):
        assert getattr(client, method)(path, params=CUSTOMER).status_code == 403

    def test_process_cancellation(self, client, gateway, make_order):
        order = make_order(status="cancellation_requested")
        path = f"/admin/orders/{order.order_id}/process-cancellation"

        forbidden = client.post(path, params=CUSTOMER, json={"action": "approve"})
        assert forbidden.status_code == 403

        response = client.post(path, params=ADMIN, json={"action": "approve", "admin_notes": "ok"})
        assert response.status_code == 200
        assert response.json()["status"] == "canceled"
        assert response.json()["refund_status"] == "succeeded"
        assert len(gateway.refunds) == 1

        again = client.post(path, params=ADMIN, json={"action": "reject"})
        assert again.status_code == 409

    def test_invalid_action(self, client, make_order):
        order = make_order(status="cancellation_requested")
        response = client.post(
            f"/admin/orders/{order.order_id}/process-cancellation",
            params=ADMIN,
            json={"action": "maybe"},
        )
        assert response.status_code == 422

    def test_refund(self, client, make_order):
        order = make_order(status="succeeded")
        path = f"/admin/orders/{order.order_id}/refund"

        response = client.post(path, params=ADMIN, json={"amount": "40.00"})
        assert response.status_code == 200
        assert Decimal(response.json()["refund_amount"]) == Decimal("40.00")
        assert response.json()["status"] == "succeeded"

        assert client.post(path, params=ADMIN, json={"amount": "60.01"}).status_code == 400

        response = client.post(path, params=ADMIN, json={})
        assert response.json()["status"] == "refunded"

    def test_list_queue_and_delete(self, client, make_order):
        queued = make_order(status="cancellation_requested")
        make_order(status="succeeded")

        queue = client.get("/admin/cancellation-requests", params=ADMIN).json()
        assert [o["order_id"] for o in queue["data"]] == [queued.order_id]

        listing = client.get("/admin/orders", params={**ADMIN, "status": "succeeded"}).json()
        assert listing["pagination"]["total"] == 1

        assert client.delete(f"/admin/orders/{queued.order_id}", params=ADMIN).status_code == 200
        assert client.get(f"/admin/orders/{queued.order_id}", params=ADMIN).status_code == 404
        assert client.get("/admin/orders", params=ADMIN).json()["pagination"]["total"] == 1

    def test_view_user_cart(self, client):
        add(client, 1, 2)

        data = client.get("/admin/carts/1", params=ADMIN).json()
        assert data["user_id"] == 1
        assert data["item_count"] == 2


class TestDuplicateEmail:
    def test_email_must_be_unique(self, client):
        response = client.post("/users/", json={"id": 6, "name": "Jan Bis", "email": "JAN@example.com"})
        assert response.status_code == 400

    def test_same_id_returns_existing_user(self, client):
        response = client.post("/users/", json={"id": 1, "name": "Someone Else"})
        assert response.json()["name"] == "Jan"


def test_product_service_mock():
    from fastapi.testclient import TestClient

    from shop.product_service.main import app as catalog

    mock = TestClient(catalog)
    product = mock.get("/products/1").json()

    assert {"price", "stock", "status"} <= set(product)
    assert mock.get("/products/999").status_code == 404
    assert [p["id"] for p in mock.get("/products", params={"status": "inactive"}).json()] == [4]
