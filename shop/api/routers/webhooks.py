# shop/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from shop.api.deps import get_gateway, get_lock_service, get_notifier
from shop.api.errors import domain_errors
from shop.data.database import get_db
from shop.domain.schemas import WebhookAck
from shop.services.order_service import OrderService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    lock_service=Depends(get_lock_service),
    notifier=Depends(get_notifier),
):
    #podpis liczony z surowego body, nie z przeparsowanego jsona
    payload = await request.body()
    svc = OrderService(db, gateway, lock_service, notifier)
    with domain_errors():
        return await run_in_threadpool(svc.handle_webhook, payload, stripe_signature)
