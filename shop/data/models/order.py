from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Column, Integer, ForeignKey, String, DateTime, Numeric, JSON, Index

from shop.data.database import Base
from shop.domain.lifecycle import OrderStatus

REFUND_NONE = "none"
REFUND_PENDING = "pending"
REFUND_SUCCEEDED = "succeeded"
REFUND_FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderModel(Base):
    """
    Rekord jednej proby checkoutu (Payment w starym systemie).

    status zmienia sie tylko przez OrderService (tabela przejsc w
    shop.domain.lifecycle) i zawsze z kontrola wersji.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(40), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=True)
    intent_id = Column(String(255), nullable=False, unique=True)
    customer_id = Column(String(255), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    refund_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    refund_status = Column(String(20), nullable=False, default=REFUND_NONE)
    refund_id = Column(String(255), nullable=True)
    # kwota zwrotu do wyplacenia po zatwierdzonym anulowaniu
    refund_pending_amount = Column(Numeric(12, 2), nullable=True)

    # snapshot pozycji koszyka, niezalezny od Cart/Product
    items = Column(JSON, nullable=False)

    payment_method = Column(String(20), nullable=False, default="card")
    payment_details = Column(JSON, nullable=True)
    customer_first_name = Column(String(50), nullable=False)
    customer_last_name = Column(String(50), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=True)

    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(String(500), nullable=True)
    last_event_id = Column(String(255), nullable=True)

    cancellation_reason = Column(String(500), nullable=True)
    cancellation_requested_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_processed_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_processed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    admin_notes = Column(String(1000), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status", "status"),
    )

    @property
    def refundable_amount(self) -> Decimal:
        return Decimal(self.amount) - Decimal(self.refund_amount or 0)
