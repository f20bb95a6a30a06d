# shop/api/routers/admin.py
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shop.api.deps import (
    admin_user,
    get_gateway,
    get_lock_service,
    get_notifier,
    get_product_client,
)
from shop.api.errors import domain_errors
from shop.data.database import get_db
from shop.data.models.user import UserModel
from shop.domain.schemas import (
    CartOut,
    OrderListOut,
    OrderOut,
    ProcessCancellationIn,
    ProcessCancellationOut,
    RefundIn,
    RefundOut,
)
from shop.services.admin_service import AdminOrderService
from shop.services.cart_service import CartService
from shop.utils.pagination import normalize_paging, page_meta

router = APIRouter(prefix="/admin", tags=["admin"])


def get_service(
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    lock_service=Depends(get_lock_service),
    notifier=Depends(get_notifier),
) -> AdminOrderService:
    return AdminOrderService(db, gateway, lock_service, notifier)


@router.get("/orders", response_model=OrderListOut)
def list_orders(
    status: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin: UserModel = Depends(admin_user),
    svc: AdminOrderService = Depends(get_service),
):
    page, limit = normalize_paging(page, limit)
    rows, total = svc.list_orders(
        status=status,
        search=search,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"data": rows, "pagination": page_meta(total, page, limit)}


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    admin: UserModel = Depends(admin_user),
    svc: AdminOrderService = Depends(get_service),
):
    with domain_errors():
        return svc.get_order(order_id)


@router.get("/cancellation-requests", response_model=OrderListOut)
def list_cancellation_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: UserModel = Depends(admin_user),
    svc: AdminOrderService = Depends(get_service),
):
    page, limit = normalize_paging(page, limit)
    rows, total = svc.list_cancellation_requests(page=page, limit=limit)
    return {"data": rows, "pagination": page_meta(total, page, limit)}


@router.post("/orders/{order_id}/process-cancellation", response_model=ProcessCancellationOut)
def process_cancellation(
    order_id: str,
    payload: ProcessCancellationIn,
    admin: UserModel = Depends(admin_user),
    svc: AdminOrderService = Depends(get_service),
):
    with domain_errors():
        return svc.process_cancellation(order_id, payload.action, admin.id, payload.admin_notes)


@router.post("/orders/{order_id}/refund", response_model=RefundOut)
def refund_order(
    order_id: str,
    payload: RefundIn,
    admin: UserModel = Depends(admin_user),
    svc: AdminOrderService = Depends(get_service),
):
    with domain_errors():
        return svc.orders.refund(order_id, payload.amount, payload.reason)


@router.delete("/orders/{order_id}")
def delete_order(
    order_id: str,
    admin: UserModel = Depends(admin_user),
    svc: AdminOrderService = Depends(get_service),
):
    with domain_errors():
        order = svc.delete_order(order_id, admin.id)
    return {"order_id": order.order_id, "deleted": True}


@router.get("/carts/{owner_id}", response_model=CartOut)
def get_user_cart(
    owner_id: int,
    admin: UserModel = Depends(admin_user),
    db: Session = Depends(get_db),
    product_client=Depends(get_product_client),
):
    return CartService(db, product_client).get_cart(owner_id)
