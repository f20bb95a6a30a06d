# shop/services/admin_service.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from shop.data.models.order import (
    OrderModel,
    REFUND_FAILED,
    REFUND_PENDING,
    REFUND_SUCCEEDED,
)
from shop.domain.errors import GatewayError, NotFound, ValidationError
from shop.domain.lifecycle import OrderEvent, OrderStatus, next_status
from shop.services.lock_service import LockService
from shop.services.notification_service import NotificationService
from shop.services.order_service import OrderService, utcnow
from shop.services.payment_gateway import PaymentGateway, to_minor
from shop.utils.logging import get_logger

logger = get_logger(__name__)

#akcja -> forma do logow i powiadomien
ACTIONS = {"approve": "approved", "reject": "rejected"}


class AdminOrderService:
    """
    Admin: kolejka prosb o anulowanie, przeglad zamowien, soft delete.

    process_cancellation jest jedynym mutatorem kolejki i deleguje do
    maszyny stanow - ponowne przetworzenie tej samej prosby konczy sie
    InvalidTransition, nigdy drugim zwrotem.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        lock_service: LockService,
        notifier: NotificationService | None = None,
    ):
        self.db = db
        self.orders = OrderService(db, gateway, lock_service, notifier)
        self.repo = self.orders.repo
        self.gateway = gateway
        self.lock_service = lock_service
        self.notifier = self.orders.notifier

    def get_order(self, order_id: str) -> OrderModel:
        order = self.repo.find_by_order_id(order_id)
        if not order:
            raise NotFound("Order not found")
        return order

    def list_orders(
        self,
        status: str | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        return self.repo.list_orders(
            status=status,
            search=search,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    def list_cancellation_requests(self, page: int = 1, limit: int = 10):
        return self.repo.list_cancellation_requests(page=page, limit=limit)

    def process_cancellation(
        self,
        order_id: str,
        action: str,
        admin_id: int,
        admin_notes: str | None = None,
    ) -> Dict[str, Any]:
        if action not in ACTIONS:
            raise ValidationError("Action must be approve or reject")

        order = self.get_order(order_id)
        processed = {
            "admin_notes": admin_notes,
            "cancellation_processed_at": utcnow(),
            "cancellation_processed_by": admin_id,
        }

        if action == "reject":
            order, _ = self.orders.transition(order, OrderEvent.REJECT_CANCELLATION, processed)
        else:
            order = self._approve(order, processed)

        logger.info(f"Cancellation of {order.order_id} {ACTIONS[action]} by admin {admin_id}")
        self.notifier.cancellation_processed(order.user_id, order.order_id, action)

        return {
            "order_id": order.order_id,
            "action": action,
            "status": order.status,
            "refund_status": order.refund_status,
            "processed_by": admin_id,
            "processed_at": order.cancellation_processed_at,
        }

    def _approve(self, order: OrderModel, processed: Dict[str, Any]) -> OrderModel:
        with self.lock_service.order_lock(order.order_id):
            self.db.refresh(order)
            next_status(order.status, OrderEvent.APPROVE_CANCELLATION)

            refund_due = order.refundable_amount
            changes = dict(processed)
            changes["refund_amount"] = order.amount
            changes["refund_pending_amount"] = refund_due if refund_due > 0 else None
            changes["refund_status"] = REFUND_PENDING if refund_due > 0 else order.refund_status

            #lokalne anulowanie zawsze przechodzi, zwrot w bramce osobno
            order, _ = self.orders.transition(order, OrderEvent.APPROVE_CANCELLATION, changes)

            if refund_due > 0:
                self.issue_cancellation_refund(order)
        return order

    def issue_cancellation_refund(self, order: OrderModel) -> bool:
        """
        Zwrot pelnej pozostalej kwoty po zatwierdzonym anulowaniu.

        Blad bramki nie cofa anulowania: zapisujemy refund_status=failed,
        a reconcile_refunds_task ponawia z tym samym idempotency key.
        Wolane pod order_lock.
        """
        due = Decimal(order.refund_pending_amount or 0)
        if due <= 0:
            return True

        try:
            result = self.gateway.refund(
                order.intent_id,
                to_minor(due),
                "requested_by_customer",
                idempotency_key=f"cancel-refund-{order.order_id}",
            )
        except GatewayError as e:
            logger.error(
                f"Refund of {due} for canceled order {order.order_id} failed, "
                f"left for reconciliation: {e}"
            )
            self.repo.apply_changes(order, {"refund_status": REFUND_FAILED})
            return False

        self.repo.apply_changes(
            order,
            {
                "refund_status": REFUND_SUCCEEDED,
                "refund_id": result.refund_id,
                "refund_pending_amount": None,
            },
        )
        return True

    def retry_failed_refund(self, order: OrderModel) -> bool:
        with self.lock_service.order_lock(order.order_id):
            self.db.refresh(order)
            if order.status != OrderStatus.CANCELED.value or order.refund_status != REFUND_FAILED:
                return True
            logger.info(f"Retrying refund for canceled order {order.order_id}")
            return self.issue_cancellation_refund(order)

    def delete_order(self, order_id: str, admin_id: int) -> OrderModel:
        """Soft delete - rekord zostaje do audytu, znika z list."""
        order = self.get_order(order_id)
        note = f"Deleted by admin {admin_id} at {utcnow().isoformat()}"
        notes = f"{order.admin_notes}\n{note}" if order.admin_notes else note
        self.repo.apply_changes(order, {"is_active": False, "admin_notes": notes[-1000:]})
        logger.info(f"Order {order.order_id} soft-deleted by admin {admin_id}")
        return order

