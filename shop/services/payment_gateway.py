# shop/services/payment_gateway.py
"""
Boundary to the remote payment processor (Stripe).

The API app builds one instance at start (``shop.main.create_app``) and hands
it to the services that need it. Each instance owns its ``stripe.StripeClient``
(timeout included), nothing is set on the ``stripe`` module. All mutating
calls carry an idempotency key, so the network-error retry can never create a
second charge or refund.
"""
import json
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping

import stripe

from shop.domain.errors import (
    GatewayError,
    GatewayUnavailable,
    RefundExceedsAvailable,
    SignatureVerificationFailed,
    ValidationError,
)
from shop.utils.retry import gateway_retry
from shop.utils.settings import (
    ALLOW_UNSIGNED_WEBHOOKS,
    APP_ENV,
    GATEWAY_MAX_RETRIES,
    GATEWAY_TIMEOUT_SECONDS,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def to_minor(amount) -> int:
    """12.345 -> 1235 (grosze/centy, zaokraglenie half-up)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class IntentResult:
    intent_id: str
    client_secret: str
    customer_id: str | None
    status: str


@dataclass
class RefundResult:
    refund_id: str
    status: str
    amount_minor: int


class PaymentGateway:
    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        allow_unsigned: bool | None = None,
        app_env: str | None = None,
        client: stripe.StripeClient | None = None,
    ):
        self.api_key = STRIPE_SECRET_KEY if api_key is None else api_key
        self.webhook_secret = STRIPE_WEBHOOK_SECRET if webhook_secret is None else webhook_secret
        self.timeout = timeout or GATEWAY_TIMEOUT_SECONDS
        self.max_retries = max_retries or GATEWAY_MAX_RETRIES
        self.allow_unsigned = ALLOW_UNSIGNED_WEBHOOKS if allow_unsigned is None else allow_unsigned
        self.app_env = app_env or APP_ENV
        self._client = client

        if not self.webhook_secret and self.allow_unsigned and self.app_env == "development":
            logger.warning(
                "STRIPE_WEBHOOK_SECRET is not set and ALLOW_UNSIGNED_WEBHOOKS is on: "
                "unsigned webhooks WILL BE ACCEPTED (development only)"
            )

    @property
    def client(self) -> stripe.StripeClient:
        #klient per instancja, ponowienia robi gateway_retry
        if self._client is None:
            self._client = stripe.StripeClient(
                self.api_key,
                http_client=stripe.RequestsClient(timeout=self.timeout),
                max_network_retries=0,
            )
        return self._client

    def _call(self, fn, *args, **kwargs):
        """Wywolanie API: retry tylko dla bledow sieciowych, mapowanie bledow."""
        name = getattr(fn, "__qualname__", repr(fn))
        try:
            return gateway_retry(self.max_retries)(fn)(*args, **kwargs)
        except stripe.APIConnectionError as e:
            logger.error(f"Gateway unreachable for {name} after {self.max_retries} attempts: {e}")
            raise GatewayUnavailable(f"Payment processor unavailable: {e}") from e
        except stripe.StripeError as e:
            logger.error(f"Gateway rejected {name}: {e}")
            raise GatewayError(getattr(e, "user_message", None) or str(e)) from e

    # ------------------------------------------------------------ customers

    def find_or_create_customer(self, customer: Mapping[str, Any], address: Mapping[str, Any]) -> str:
        email = customer["email"]
        customers = self.client.v1.customers
        existing = self._call(customers.list, params={"email": email, "limit": 1})
        if existing["data"]:
            return existing["data"][0]["id"]

        params = {
            "email": email,
            "name": f"{customer['first_name']} {customer['last_name']}",
            "address": _stripe_address(address),
        }
        if customer.get("phone"):
            params["phone"] = customer["phone"]

        created = self._call(
            customers.create,
            params=params,
            options={"idempotency_key": f"customer-{email}"},
        )
        logger.info(f"Created remote customer {created['id']} for {email}")
        return created["id"]

    # ------------------------------------------------------------ intents

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        customer: Mapping[str, Any],
        shipping_address: Mapping[str, Any],
        order_id: str,
        user_id: int,
        idempotency_key: str,
        item_count: int | None = None,
    ) -> IntentResult:
        if Decimal(str(amount)) <= 0:
            raise ValidationError("Valid amount is required")

        customer_id = self.find_or_create_customer(customer, shipping_address)
        intent = self._call(
            self.client.v1.payment_intents.create,
            params={
                "amount": to_minor(amount),
                "currency": currency.lower(),
                "customer": customer_id,
                "automatic_payment_methods": {"enabled": True},
                "metadata": {"order_id": order_id, "user_id": str(user_id)},
                "shipping": {
                    "name": f"{customer['first_name']} {customer['last_name']}",
                    "address": _stripe_address(shipping_address),
                },
                "description": f"Order {order_id} for {item_count or 0} item(s)",
            },
            options={"idempotency_key": idempotency_key},
        )
        logger.info(f"Created intent {intent['id']} for order {order_id} ({amount} {currency})")
        return IntentResult(
            intent_id=intent["id"],
            client_secret=intent["client_secret"],
            customer_id=customer_id,
            status=intent["status"],
        )

    def retrieve_intent(self, intent_id: str) -> Mapping[str, Any]:
        return self._call(self.client.v1.payment_intents.retrieve, intent_id)

    def cancel_intent(self, intent_id: str) -> Mapping[str, Any]:
        intent = self._call(
            self.client.v1.payment_intents.cancel,
            intent_id,
            options={"idempotency_key": f"cancel-{intent_id}"},
        )
        logger.info(f"Canceled intent {intent_id}")
        return intent

    # ------------------------------------------------------------ refunds

    def refund(
        self,
        intent_id: str,
        amount_minor: int,
        reason: str,
        idempotency_key: str,
        available_minor: int | None = None,
    ) -> RefundResult:
        if amount_minor <= 0:
            raise ValidationError("Refund amount must be positive")
        if available_minor is not None and amount_minor > available_minor:
            raise RefundExceedsAvailable("Refund amount exceeds available amount")

        refund = self._call(
            self.client.v1.refunds.create,
            params={"payment_intent": intent_id, "amount": amount_minor, "reason": reason},
            options={"idempotency_key": idempotency_key},
        )
        logger.info(f"Refund {refund['id']} ({amount_minor} minor units) for intent {intent_id}")
        return RefundResult(
            refund_id=refund["id"],
            status=refund["status"],
            amount_minor=refund["amount"],
        )

    # ------------------------------------------------------------ webhooks

    def verify_webhook(self, payload: bytes, signature: str | None) -> Mapping[str, Any]:
        """
        Zwraca zweryfikowany event albo rzuca SignatureVerificationFailed.

        Bez sekretu event jest odrzucany, chyba ze jawnie wlaczono
        ALLOW_UNSIGNED_WEBHOOKS w APP_ENV=development.
        """
        if not self.webhook_secret:
            if self.allow_unsigned and self.app_env == "development":
                logger.warning("Accepting UNSIGNED webhook - STRIPE_WEBHOOK_SECRET not configured")
                try:
                    return json.loads(payload)
                except ValueError as e:
                    raise SignatureVerificationFailed("Invalid webhook payload") from e
            logger.error("Webhook rejected: STRIPE_WEBHOOK_SECRET not configured")
            raise SignatureVerificationFailed("Webhook secret not configured")

        if not signature:
            raise SignatureVerificationFailed("Missing Stripe-Signature header")

        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise SignatureVerificationFailed(str(e)) from e
        except ValueError as e:
            raise SignatureVerificationFailed("Invalid webhook payload") from e


def _stripe_address(address: Mapping[str, Any]) -> dict:
    return {
        "line1": address["address"],
        "city": address["city"],
        "state": address.get("state"),
        "country": address["country"],
        "postal_code": address["zip_code"],
    }
