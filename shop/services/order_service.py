# shop/services/order_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop.data.models.cart_item import to_price
from shop.data.models.order import OrderModel, REFUND_SUCCEEDED
from shop.domain.errors import (
    InvalidTransition,
    NotFound,
    RefundExceedsAvailable,
    ValidationError,
    GatewayError,
)
from shop.domain.lifecycle import (
    GATEWAY_EVENTS,
    INTENT_STATUS_EVENTS,
    OrderEvent,
    next_status,
)
from shop.repos.order_repo import OrderRepo
from shop.services.lock_service import LockService
from shop.services.notification_service import NotificationService
from shop.services.payment_gateway import PaymentGateway, to_minor
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """
    Serwis odpowiedzialny za cykl zycia zamowienia.

    Kazda zmiana statusu idzie przez transition(): tabela przejsc
    (shop.domain.lifecycle) + zapis z kontrola wersji w OrderRepo.
    Zrodla zdarzen: webhook bramki platnosci, confirm po stronie klienta,
    akcje uzytkownika i admina (AdminOrderService).
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        lock_service: LockService,
        notifier: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.gateway = gateway
        self.lock_service = lock_service
        self.notifier = notifier or NotificationService()

    # =====================================================
    # STATE MACHINE
    # =====================================================
    def transition(
        self,
        order: OrderModel,
        event: OrderEvent,
        changes: Dict[str, Any] | None = None,
    ) -> tuple[OrderModel, bool]:
        """
        Apply ``event`` to ``order``.

        Returns ``(order, changed)``; ``changed`` is False for a re-delivered
        event that was already applied, in which case nothing is written.
        Raises InvalidTransition (state untouched) or ConcurrentModification
        (stale version, state untouched).
        """
        previous = order.status
        target, changed = next_status(previous, event, paid=order.paid_at is not None)

        if not changed:
            logger.info(f"Order {order.order_id}: '{event.value}' already applied, no-op")
            return order, False

        values = dict(changes or {})
        values["status"] = target.value
        self.repo.apply_changes(order, values)

        logger.info(
            f"Order {order.order_id}: {previous} -> {target.value} "
            f"({event.value}, version {order.version})"
        )
        return order, True

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: str, user_id: int) -> OrderModel:
        order = self.repo.find_by_order_id_and_user(order_id, user_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def list_orders(self, user_id: int, status: str | None, page: int, limit: int):
        return self.repo.list_orders(status=status, user_id=user_id, page=page, limit=limit)

    # =====================================================
    # GATEWAY EVENTS
    # =====================================================
    def handle_webhook(self, payload: bytes, signature: str | None) -> Dict[str, Any]:
        """
        Use Case: zdarzenie od bramki platnosci.

        Weryfikacja podpisu przed czymkolwiek innym - blad podpisu nie dotyka
        zadnego zamowienia. Dostarczanie jest at-least-once, wiec powtorka
        tego samego eventu (id w ledgerze) albo statusu jest no-opem.
        """
        event = self.gateway.verify_webhook(payload, signature)

        event_id = event.get("id")
        event_type = event.get("type")
        mapped = GATEWAY_EVENTS.get(event_type)

        if mapped is None:
            logger.info(f"Unhandled webhook event type: {event_type}")
            return {"received": True, "event_type": event_type, "duplicate": False}

        intent = event["data"]["object"]
        intent_id = intent["id"]

        if event_id and self.repo.has_event(event_id):
            logger.info(f"Webhook event {event_id} already processed")
            return {"received": True, "event_type": event_type, "duplicate": True}

        order = self.repo.find_by_intent_id(intent_id)
        if not order:
            #bramka moze wyprzedzic zapis zamowienia - 404, provider ponowi
            logger.warning(f"Webhook {event_type} for unknown intent {intent_id}")
            raise NotFound(f"No order for intent {intent_id}")

        changes: Dict[str, Any] = {"last_event_id": event_id}
        if mapped is OrderEvent.GATEWAY_SUCCEEDED:
            changes["paid_at"] = utcnow()
        else:
            error = intent.get("last_payment_error") or {}
            changes["failure_reason"] = error.get("message") or event_type

        if event_id:
            self.repo.record_event(event_id, event_type, intent_id)

        try:
            order, changed = self.transition(order, mapped, changes)
            if not changed:
                self.repo.commit()
        except InvalidTransition:
            self.repo.rollback()
            logger.error(
                f"Webhook {event_type} ({event_id}) rejected for order {order.order_id} "
                f"in status {order.status}"
            )
            raise
        except IntegrityError:
            #rownolegla dostawa tego samego eventu
            self.repo.rollback()
            logger.info(f"Webhook event {event_id} recorded concurrently, skipping")
            return {"received": True, "event_type": event_type, "duplicate": True}

        if changed and mapped is OrderEvent.GATEWAY_SUCCEEDED:
            self.notifier.payment_succeeded(order.user_id, order.order_id)

        return {"received": True, "event_type": event_type, "duplicate": not changed}

    def confirm_payment(
        self,
        intent_id: str,
        user_id: int,
        payment_details: Mapping[str, Any] | None = None,
    ) -> OrderModel:
        """
        Use Case: klient po platnosci prosi o synchronizacje statusu.
        Pobiera intent z bramki i stosuje odpowiadajace zdarzenie.
        """
        order = self.repo.find_by_intent_id(intent_id)
        if not order or order.user_id != user_id or not order.is_active:
            raise NotFound("Payment not found")

        intent = self.gateway.retrieve_intent(intent_id)
        remote_status = intent["status"]
        event = INTENT_STATUS_EVENTS.get(remote_status)
        if remote_status == "requires_payment_method" and intent.get("last_payment_error"):
            event = OrderEvent.GATEWAY_FAILED

        changes: Dict[str, Any] = {}
        if payment_details:
            changes["payment_details"] = {
                k: v for k, v in dict(payment_details).items() if v is not None
            }

        if event is not None:
            if event is OrderEvent.GATEWAY_SUCCEEDED:
                changes["paid_at"] = order.paid_at or utcnow()
            elif event is OrderEvent.GATEWAY_FAILED:
                error = intent.get("last_payment_error") or {}
                changes["failure_reason"] = error.get("message") or remote_status

            order, changed = self.transition(order, event, changes)
            if changed:
                if event is OrderEvent.GATEWAY_SUCCEEDED:
                    self.notifier.payment_succeeded(order.user_id, order.order_id)
                return order

        #status bez zmian, zapisz tylko dane karty
        if "payment_details" in changes:
            self.repo.apply_changes(order, {"payment_details": changes["payment_details"]})
        logger.info(f"Order {order.order_id} confirm: remote status '{remote_status}'")
        return order

    # =====================================================
    # USER COMMANDS
    # =====================================================
    def cancel_order(self, order_id: str, user_id: int, reason: str | None = None) -> OrderModel:
        """Bezposrednie anulowanie zamowienia pending - nic nie zostalo pobrane."""
        order = self.get_order(order_id, user_id)

        order, _ = self.transition(
            order,
            OrderEvent.USER_CANCEL,
            {
                "cancellation_reason": reason or "Cancelled by user",
                "cancellation_processed_at": utcnow(),
                "cancellation_processed_by": user_id,
            },
        )

        try:
            self.gateway.cancel_intent(order.intent_id)
        except GatewayError as e:
            #lokalne anulowanie juz zapisane
            logger.warning(f"Could not cancel remote intent {order.intent_id}: {e}")

        return order

    def request_cancellation(
        self,
        order_id: str,
        user_id: int,
        reason: str = "requested_by_customer",
        additional_info: str | None = None,
    ) -> OrderModel:
        order = self.get_order(order_id, user_id)

        changes: Dict[str, Any] = {
            "cancellation_reason": reason,
            "cancellation_requested_at": utcnow(),
        }
        if additional_info:
            changes["admin_notes"] = f"Customer note: {additional_info}"

        order, _ = self.transition(order, OrderEvent.REQUEST_CANCELLATION, changes)
        return order

    # =====================================================
    # REFUNDS
    # =====================================================
    def refund(
        self,
        order_id: str,
        amount: Decimal | None = None,
        reason: str = "requested_by_customer",
    ) -> Dict[str, Any]:
        """
        Use Case: reczny zwrot (czesciowy lub pelny) zamowienia succeeded.

        refund_amount nigdy nie przekracza amount. Pelny zwrot konczy sie
        statusem refunded, czesciowy zostawia succeeded.
        """
        order = self.repo.find_by_order_id(order_id)
        if not order:
            raise NotFound("Order not found")

        with self.lock_service.order_lock(order.order_id):
            self.db.refresh(order)

            available = order.refundable_amount
            requested = to_price(amount) if amount is not None else available

            if available <= 0 or requested > available:
                raise RefundExceedsAvailable(
                    f"Refund amount exceeds available amount ({available})"
                )
            if requested <= 0:
                raise ValidationError("Refund amount must be positive")

            new_total = to_price(Decimal(order.refund_amount or 0) + requested)
            event = (
                OrderEvent.FULL_REFUND
                if new_total == to_price(order.amount)
                else OrderEvent.REFUND
            )
            #walidacja przejscia zanim ruszymy pieniadze
            next_status(order.status, event)

            result = self.gateway.refund(
                order.intent_id,
                to_minor(requested),
                reason,
                idempotency_key=f"refund-{order.order_id}-v{order.version}-{to_minor(requested)}",
                available_minor=to_minor(available),
            )

            try:
                order, _ = self.transition(
                    order,
                    event,
                    {
                        "refund_amount": new_total,
                        "refund_id": result.refund_id,
                        "refund_status": REFUND_SUCCEEDED,
                    },
                )
            except Exception:
                logger.error(
                    f"Refund {result.refund_id} issued for order {order.order_id} "
                    f"but the order was not updated - needs reconciliation"
                )
                raise

        return {
            "order_id": order.order_id,
            "refund_id": result.refund_id,
            "amount": requested,
            "refund_amount": order.refund_amount,
            "status": order.status,
        }
