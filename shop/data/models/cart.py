#shop/data/models/cart.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Index, text
from sqlalchemy.orm import relationship

from shop.data.database import Base
from shop.data.models.cart_item import CartItemModel, to_price
from shop.domain.errors import LineNotFound, ValidationError

CART_ACTIVE = "active"
CART_COMPLETED = "completed"
CART_ABANDONED = "abandoned"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartModel(Base):
    """
    Koszyk uzytkownika + ledger pozycji.

    total i item_count sa wyliczane z pozycji (recompute_totals) przed kazdym
    zapisem, nigdy ustawiane recznie.
    """

    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(String(20), nullable=False, default=CART_ACTIVE)
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    item_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )

    #jeden aktywny koszyk na usera, na poziomie bazy
    __table_args__ = (
        Index(
            "uq_carts_active_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def find_line(self, line_id: int) -> CartItemModel | None:
        for line in self.items:
            if line.id == line_id:
                return line
        return None

    def find_product_line(self, product_id: int) -> CartItemModel | None:
        for line in self.items:
            if line.product_id == product_id:
                return line
        return None

    def add_item(self, product_id: int, quantity: int, unit_price) -> CartItemModel:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        price = to_price(unit_price)
        line = self.find_product_line(product_id)

        if line:
            line.quantity += quantity
            line.price = price  # aktualna cena
        else:
            line = CartItemModel(product_id=product_id, quantity=quantity, price=price)
            self.items.append(line)

        self.recompute_totals()
        return line

    def update_quantity(self, line_id: int, quantity: int) -> CartItemModel:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        line = self.find_line(line_id)
        if not line:
            raise LineNotFound(f"Item {line_id} not found in cart")

        line.quantity = quantity
        self.recompute_totals()
        return line

    def remove_line(self, line_id: int) -> bool:
        line = self.find_line(line_id)
        if line:
            self.items.remove(line)
        self.recompute_totals()
        return line is not None

    def clear(self) -> None:
        self.items.clear()
        self.recompute_totals()

    def recompute_totals(self) -> None:
        self.total = sum((to_price(i.price) * i.quantity for i in self.items), Decimal("0.00"))
        self.item_count = sum(i.quantity for i in self.items)

    def checkout(self) -> None:
        if self.status != CART_ACTIVE:
            raise ValidationError("Cart is not active")
        self.recompute_totals()
        self.status = CART_COMPLETED

    def reopen(self) -> None:
        #checkout nie doszedł do skutku
        if self.status != CART_COMPLETED:
            raise ValidationError("Only a completed cart can be reopened")
        self.status = CART_ACTIVE
