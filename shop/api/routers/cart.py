# shop/api/routers/cart.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shop.api.deps import current_user, get_gateway, get_product_client
from shop.api.errors import domain_errors
from shop.data.database import get_db
from shop.data.models.user import UserModel
from shop.domain.schemas import (
    CartOut,
    CartSummaryOut,
    CheckoutIn,
    CheckoutOut,
    ItemIn,
    QuantityIn,
)
from shop.services.cart_service import CartService
from shop.services.checkout_service import CheckoutService
from shop.services.payment_gateway import PaymentGateway
from shop.services.product_client import ProductClient

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
) -> CartService:
    return CartService(db=db, product_client=product_client)


@router.get("", response_model=CartOut)
def get_cart(
    user: UserModel = Depends(current_user),
    svc: CartService = Depends(get_service),
):
    return svc.get_cart(user.id)


@router.get("/summary", response_model=CartSummaryOut)
def get_summary(
    user: UserModel = Depends(current_user),
    svc: CartService = Depends(get_service),
):
    return svc.get_summary(user.id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user: UserModel = Depends(current_user),
    svc: CartService = Depends(get_service),
):
    with domain_errors():
        return svc.add_item(user.id, payload.product_id, payload.quantity)


@router.put("/items/{line_id}", response_model=CartOut)
def update_item(
    line_id: int,
    payload: QuantityIn,
    user: UserModel = Depends(current_user),
    svc: CartService = Depends(get_service),
):
    with domain_errors():
        return svc.update_item(user.id, line_id, payload.quantity)


@router.delete("/items/{line_id}", response_model=CartOut)
def remove_item(
    line_id: int,
    user: UserModel = Depends(current_user),
    svc: CartService = Depends(get_service),
):
    with domain_errors():
        return svc.remove_item(user.id, line_id)


@router.delete("", response_model=CartOut)
def clear_cart(
    user: UserModel = Depends(current_user),
    svc: CartService = Depends(get_service),
):
    with domain_errors():
        return svc.clear_cart(user.id)


@router.post("/checkout", response_model=CheckoutOut, status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutIn,
    user: UserModel = Depends(current_user),
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Zamienia aktywny koszyk w zamowienie pending i intent w bramce.
    Zwraca client_secret do potwierdzenia platnosci po stronie klienta.
    """
    svc = CheckoutService(db, product_client, gateway)
    with domain_errors():
        return svc.checkout(user.id, payload)
