# shop/services/checkout_service.py
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shop.data.models.cart import CartModel
from shop.data.models.order import OrderModel
from shop.domain.errors import ConcurrentModification, OutOfStock, ValidationError
from shop.domain.schemas import CheckoutIn
from shop.repos.cart_repo import CartRepo
from shop.repos.order_repo import OrderRepo, generate_order_id
from shop.services.payment_gateway import PaymentGateway
from shop.services.product_client import ProductClient
from shop.utils.logging import get_logger
from shop.utils.settings import DEFAULT_CURRENCY, MIN_CHARGE_AMOUNT

logger = get_logger(__name__)


class CheckoutService:
    """
    Checkout aktywnego koszyka: koszyk completed -> intent w bramce -> zamówienie pending.

    Koszyk jest zajmowany zapisem z kontrolą wersji zanim cokolwiek trafi do
    bramki, więc z dwóch równoległych checkoutów tylko jeden tworzy intent,
    drugi dostaje ConcurrentModification. Gdy intent albo zamówienie się nie
    powiedzie, koszyk wraca do active.
    """

    def __init__(self, db: Session, product_client: ProductClient, gateway: PaymentGateway):
        self.db = db
        self.carts = CartRepo(db)
        self.orders = OrderRepo(db)
        self.product_client = product_client
        self.gateway = gateway

    def _snapshot(self, cart) -> list[dict]:
        #stan magazynu sprawdzany jeszcze raz, ceny z koszyka
        items = []
        for line in cart.items:
            pdata = self.product_client.fetch_product(line.product_id)
            if pdata.get("status", "active") != "active":
                raise ValidationError(f"Product {line.product_id} is no longer available")
            stock = int(pdata.get("stock", 0))
            if line.quantity > stock:
                raise OutOfStock(line.product_id, line.quantity, stock)
            items.append(
                {
                    "product_id": line.product_id,
                    "name": pdata.get("name"),
                    "price": str(line.price),
                    "quantity": line.quantity,
                }
            )
        return items

    def _release(self, cart: CartModel, order_id: str) -> None:
        cart.reopen()
        try:
            self.carts.save(cart)
        except (ConcurrentModification, IntegrityError) as e:
            #user ma już nowy aktywny koszyk albo ktoś ruszył ten
            self.db.rollback()
            logger.error(f"Cart {cart.id} not reopened after failed checkout of order {order_id}: {e}")

    def checkout(self, user_id: int, payload: CheckoutIn) -> Dict[str, Any]:
        cart = self.carts.get_active_cart_by_user(user_id)
        if not cart or not cart.items:
            raise ValidationError("Cart is empty")

        cart.recompute_totals()
        amount = cart.total
        if amount < MIN_CHARGE_AMOUNT:
            raise ValidationError(f"Order total must be at least {MIN_CHARGE_AMOUNT}")

        items = self._snapshot(cart)
        currency = payload.currency or DEFAULT_CURRENCY
        customer = payload.customer.model_dump()
        shipping = payload.shipping_address.model_dump()
        billing = payload.billing_address.model_dump() if payload.billing_address else shipping
        order_id = generate_order_id()

        cart.checkout()
        self.carts.save(cart)

        try:
            intent = self.gateway.create_intent(
                amount=amount,
                currency=currency,
                customer=customer,
                shipping_address=shipping,
                order_id=order_id,
                user_id=user_id,
                idempotency_key=f"checkout-{order_id}",
                item_count=cart.item_count,
            )
        except Exception:
            self._release(cart, order_id)
            raise

        order = OrderModel(
            order_id=order_id,
            user_id=user_id,
            cart_id=cart.id,
            intent_id=intent.intent_id,
            customer_id=intent.customer_id,
            amount=amount,
            currency=currency,
            items=items,
            payment_method=payload.payment_method,
            customer_first_name=customer["first_name"],
            customer_last_name=customer["last_name"],
            customer_email=customer["email"],
            customer_phone=customer.get("phone"),
            shipping_address=shipping,
            billing_address=billing,
        )
        try:
            order = self.orders.create_order(order)
        except SQLAlchemyError:
            self.orders.rollback()
            logger.error(
                f"Intent {intent.intent_id} created but order {order_id} was not saved "
                f"(orphaned intent)"
            )
            self._release(cart, order_id)
            raise

        logger.info(f"Checkout of cart {cart.id}: order {order_id}, {amount} {currency}")
        return {
            "order_id": order.order_id,
            "intent_id": order.intent_id,
            "client_secret": intent.client_secret,
            "amount": order.amount,
            "currency": order.currency,
            "status": order.status,
        }
