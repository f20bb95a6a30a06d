# shop/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shop.api.deps import current_user, get_gateway, get_lock_service, get_notifier
from shop.api.errors import domain_errors
from shop.data.database import get_db
from shop.data.models.user import UserModel
from shop.domain.schemas import (
    CancelIn,
    CancellationRequestIn,
    ConfirmIn,
    OrderListOut,
    OrderOut,
)
from shop.services.order_service import OrderService
from shop.utils.pagination import normalize_paging, page_meta

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    lock_service=Depends(get_lock_service),
    notifier=Depends(get_notifier),
) -> OrderService:
    return OrderService(db, gateway, lock_service, notifier)


@router.get("", response_model=OrderListOut)
def list_orders(
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: UserModel = Depends(current_user),
    svc: OrderService = Depends(get_service),
):
    page, limit = normalize_paging(page, limit)
    rows, total = svc.list_orders(user.id, status, page, limit)
    return {"data": rows, "pagination": page_meta(total, page, limit)}


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user: UserModel = Depends(current_user),
    svc: OrderService = Depends(get_service),
):
    with domain_errors():
        return svc.get_order(order_id, user.id)


@router.post("/confirm/{intent_id}", response_model=OrderOut)
def confirm_payment(
    intent_id: str,
    payload: ConfirmIn | None = None,
    user: UserModel = Depends(current_user),
    svc: OrderService = Depends(get_service),
):
    """Synchronizacja statusu po potwierdzeniu platnosci przez klienta."""
    details = payload.payment_details.model_dump() if payload and payload.payment_details else None
    with domain_errors():
        return svc.confirm_payment(intent_id, user.id, details)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: str,
    payload: CancelIn | None = None,
    user: UserModel = Depends(current_user),
    svc: OrderService = Depends(get_service),
):
    with domain_errors():
        return svc.cancel_order(order_id, user.id, payload.reason if payload else None)


@router.post("/{order_id}/cancel-request", response_model=OrderOut)
def request_cancellation(
    order_id: str,
    payload: CancellationRequestIn,
    user: UserModel = Depends(current_user),
    svc: OrderService = Depends(get_service),
):
    with domain_errors():
        return svc.request_cancellation(
            order_id, user.id, payload.reason, payload.additional_info
        )
