# shop/repos/order_repo.py
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from shop.data.models.order import OrderModel, REFUND_FAILED
from shop.data.models.webhook_event import WebhookEventModel
from shop.domain.errors import ConcurrentModification
from shop.domain.lifecycle import OrderStatus

_ALPHABET = string.ascii_uppercase + string.digits

SORTABLE_FIELDS = {
    "created_at": OrderModel.created_at,
    "updated_at": OrderModel.updated_at,
    "amount": OrderModel.amount,
    "status": OrderModel.status,
}


def generate_order_id() -> str:
    #ORD-<epoch ms>-<9 znakow>
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        if not order.order_id:
            order.order_id = generate_order_id()
        order.status = OrderStatus.PENDING.value
        order.version = 1
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def find_by_order_id(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(
                OrderModel.order_id == order_id,
                OrderModel.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def find_by_order_id_and_user(self, order_id: str, user_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(
                OrderModel.order_id == order_id,
                OrderModel.user_id == user_id,
                OrderModel.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def find_by_intent_id(self, intent_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.intent_id == intent_id)
        ).scalar_one_or_none()

    def apply_changes(self, order: OrderModel, changes: Dict[str, Any]) -> OrderModel:
        """
        Jedyna sciezka zapisu zmian zamowienia.

        Optimistic locking: update ... where id = :id and version = :version,
        0 wierszy oznacza ze ktos zmienil zamowienie w miedzyczasie.
        """
        old_version = order.version
        values = dict(changes)
        values["version"] = old_version + 1
        values["updated_at"] = datetime.now(timezone.utc)

        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.version == old_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            self.db.rollback()
            raise ConcurrentModification(
                f"Order {order.order_id} was modified by another request"
            )

        self.db.commit()

        for key, value in values.items():
            set_committed_value(order, key, value)
        return order

    def list_orders(
        self,
        status: str | None = None,
        user_id: int | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[OrderModel], int]:
        stmt = select(OrderModel).where(OrderModel.is_active.is_(True))

        if status and status != "all":
            stmt = stmt.where(OrderModel.status == status)
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    OrderModel.order_id.ilike(pattern),
                    OrderModel.customer_email.ilike(pattern),
                    OrderModel.customer_first_name.ilike(pattern),
                    OrderModel.customer_last_name.ilike(pattern),
                )
            )
        if start_date:
            stmt = stmt.where(OrderModel.created_at >= start_date)
        if end_date:
            stmt = stmt.where(OrderModel.created_at <= end_date)

        total = self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()

        column = SORTABLE_FIELDS.get(sort_by, OrderModel.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        rows = self.db.execute(
            stmt.order_by(ordering, OrderModel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return list(rows), total

    def list_cancellation_requests(self, page: int = 1, limit: int = 10) -> Tuple[List[OrderModel], int]:
        stmt = select(OrderModel).where(
            OrderModel.status == OrderStatus.CANCELLATION_REQUESTED.value,
            OrderModel.is_active.is_(True),
        )
        total = self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()

        #FIFO - najstarsze prosby najpierw
        rows = self.db.execute(
            stmt.order_by(OrderModel.cancellation_requested_at.asc(), OrderModel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return list(rows), total

    def find_failed_refunds(self, limit: int = 50) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(
                    OrderModel.status == OrderStatus.CANCELED.value,
                    OrderModel.refund_status == REFUND_FAILED,
                )
                .order_by(OrderModel.cancellation_processed_at.asc())
                .limit(limit)
            ).scalars()
        )

    # webhook event ledger

    def has_event(self, event_id: str) -> bool:
        return self.db.execute(
            select(WebhookEventModel.id).where(WebhookEventModel.event_id == event_id)
        ).first() is not None

    def record_event(self, event_id: str, event_type: str, intent_id: str | None) -> None:
        #zapis razem z commitem zmiany zamowienia
        self.db.add(
            WebhookEventModel(event_id=event_id, event_type=event_type, intent_id=intent_id)
        )

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
