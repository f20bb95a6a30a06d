# shop/tasks/refunds.py
from sqlalchemy.orm import Session

from shop.celery_worker import celery_app
from shop.data.database import SessionLocal
from shop.domain.errors import ConcurrentModification
from shop.services.admin_service import AdminOrderService
from shop.services.lock_service import LockService
from shop.services.payment_gateway import PaymentGateway
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def reconcile_refunds(db: Session, gateway: PaymentGateway, lock_service: LockService, limit: int = 50) -> dict:
    """
    Ponawia zwroty anulowanych zamowien z refund_status=failed.

    Ten sam idempotency key co przy zatwierdzeniu anulowania, wiec zwrot,
    ktory jednak doszedl do bramki, nie zostanie wyplacony drugi raz.
    """
    svc = AdminOrderService(db, gateway, lock_service)
    orders = svc.repo.find_failed_refunds(limit)
    logger.info(f"Reconciling {len(orders)} failed refunds")

    refunded = 0
    for order in orders:
        try:
            if svc.retry_failed_refund(order):
                refunded += 1
        except ConcurrentModification as e:
            logger.warning(f"Skipping order {order.order_id}: {e}")

    return {"checked": len(orders), "refunded": refunded}


@celery_app.task(name="shop.tasks.refunds.reconcile_refunds_task")
def reconcile_refunds_task():
    db = SessionLocal()
    try:
        return reconcile_refunds(db, PaymentGateway(), LockService())
    finally:
        db.close()
