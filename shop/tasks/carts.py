# shop/tasks/carts.py
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from shop.celery_worker import celery_app
from shop.data.database import SessionLocal
from shop.data.models.cart import CART_ABANDONED
from shop.domain.errors import ConcurrentModification
from shop.repos.cart_repo import CartRepo
from shop.utils.logging import get_logger
from shop.utils.settings import CART_ABANDON_SECONDS

logger = get_logger(__name__)


def abandon_stale_carts(db: Session, now: datetime | None = None, max_idle: int = CART_ABANDON_SECONDS) -> int:
    """Aktywne koszyki bez zmian dluzej niz max_idle sekund -> abandoned."""
    now = now or datetime.now(timezone.utc)
    repo = CartRepo(db)

    carts = repo.find_stale_active_carts(now - timedelta(seconds=max_idle))
    logger.info(f"Found {len(carts)} stale carts to abandon")

    abandoned = 0
    for cart in carts:
        cart.status = CART_ABANDONED
        try:
            repo.save(cart)
            abandoned += 1
        except ConcurrentModification:
            #user wlasnie zmienil koszyk, zostaje aktywny
            logger.info(f"Cart {cart.id} changed concurrently, not abandoned")
    return abandoned


@celery_app.task(name="shop.tasks.carts.abandon_stale_carts_task")
def abandon_stale_carts_task():
    logger.info("Abandon stale carts task started")
    db = SessionLocal()
    try:
        return {"abandoned": abandon_stale_carts(db)}
    finally:
        db.close()
