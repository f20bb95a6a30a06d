# shop/celery_worker.py
from celery import Celery

from shop.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "shop",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "shop.tasks.carts",
    "shop.tasks.refunds",
    "shop.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "abandon-stale-carts-hourly": {
        "task": "shop.tasks.carts.abandon_stale_carts_task",
        "schedule": 60.0 * 60,
    },
    "reconcile-failed-refunds": {
        "task": "shop.tasks.refunds.reconcile_refunds_task",
        "schedule": 5 * 60.0,  # co 5 minut
    },
}

celery_app.conf.timezone = "UTC"
