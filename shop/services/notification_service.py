# shop/services/notification_service.py
from shop.celery_worker import celery_app
from shop.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def payment_succeeded(user_id: int, order_id: str):
        send_order_notification_task.delay(user_id, order_id, "payment_succeeded")

    @staticmethod
    def cancellation_processed(user_id: int, order_id: str, action: str):
        kind = "cancellation_approved" if action == "approve" else "cancellation_rejected"
        send_order_notification_task.delay(user_id, order_id, kind)


@celery_app.task(name="shop.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: str, kind: str):
    """
    Celery task - w prawdziwym systemie wysłałby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} -> {kind}")
    return {"user_id": user_id, "order_id": order_id, "kind": kind, "status": "sent"}
