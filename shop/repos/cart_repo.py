# shop/repos/cart_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop.data.models.cart import CartModel, CART_ACTIVE
from shop.domain.errors import ConcurrentModification


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_active_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(
                CartModel.user_id == user_id,
                CartModel.status == CART_ACTIVE,
            )
        ).scalar_one_or_none()

    def get_or_create_active_cart(self, user_id: int) -> CartModel:
        existing = self.get_active_cart_by_user(user_id)
        if existing:
            return existing

        cart = CartModel(user_id=user_id, status=CART_ACTIVE, version=1)
        self.db.add(cart)
        try:
            self.db.commit()
        except IntegrityError:
            #inny request utworzyl koszyk w miedzyczasie (unikalny indeks)
            self.db.rollback()
            return self.get_active_cart_by_user(user_id)

        self.db.refresh(cart)
        return cart

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        #update carts set ... where id = :id and version = :old_version
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def save(self, cart: CartModel) -> CartModel:
        """Persist line changes and derived totals guarded by the cart version."""
        cart.recompute_totals()
        old_version = cart.version
        self.db.flush()

        rowcount = self.update_cart_version(
            cart_id=cart.id,
            old_version=old_version,
            new_data={
                "version": old_version + 1,
                "total": cart.total,
                "item_count": cart.item_count,
                "status": cart.status,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            self.db.rollback()
            raise ConcurrentModification("Cart was modified by another request")

        self.db.commit()
        self.db.refresh(cart)
        return cart

    def find_stale_active_carts(self, cutoff: datetime) -> list[CartModel]:
        return list(
            self.db.execute(
                select(CartModel).where(
                    CartModel.status == CART_ACTIVE,
                    CartModel.updated_at < cutoff,
                )
            ).scalars()
        )
