# shop/api/deps.py
from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from shop.api.errors import domain_errors
from shop.data.database import get_db
from shop.data.models.user import UserModel
from shop.services.lock_service import LockService
from shop.services.notification_service import NotificationService
from shop.services.payment_gateway import PaymentGateway
from shop.services.product_client import ProductClient
from shop.services.user_service import UserService

#klienci zewnetrzni tworzeni raz w create_app i trzymani w app.state


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_product_client(request: Request) -> ProductClient:
    return request.app.state.product_client


def get_lock_service(request: Request) -> LockService:
    return request.app.state.lock_service


def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


def current_user(
    user_id: int = Query(..., gt=0, description="ID uzytkownika wykonujacego akcje"),
    db: Session = Depends(get_db),
) -> UserModel:
    with domain_errors():
        return UserService(db).get_user(user_id)


def admin_user(
    user_id: int = Query(..., gt=0, description="ID administratora"),
    db: Session = Depends(get_db),
) -> UserModel:
    with domain_errors():
        return UserService(db).require_admin(user_id)
