# shop/main.py
from fastapi import FastAPI
import uvicorn

from shop.api.routers import admin, cart, health, orders, users, webhooks
from shop.data.database import init_db
from shop.services.lock_service import LockService
from shop.services.notification_service import NotificationService
from shop.services.payment_gateway import PaymentGateway
from shop.services.product_client import ProductClient
from shop.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(
    gateway: PaymentGateway | None = None,
    product_client: ProductClient | None = None,
    lock_service: LockService | None = None,
    notifier: NotificationService | None = None,
    create_tables: bool = True,
) -> FastAPI:
    app = FastAPI(
        title="Shop Service",
        version="1.0.0",
    )

    if create_tables:
        init_db()

    #jedna instancja klientow na proces
    app.state.gateway = gateway or PaymentGateway()
    app.state.product_client = product_client or ProductClient()
    app.state.lock_service = lock_service or LockService()
    app.state.notifier = notifier or NotificationService()

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(webhooks.router)
    app.include_router(admin.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
