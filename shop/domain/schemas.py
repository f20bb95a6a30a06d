# shop/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Literal
from decimal import Decimal
from datetime import datetime


# ---------------------------------------------------------------- users

class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Imię użytkownika")
    email: str | None = Field(None, max_length=255)
    role: Literal["customer", "admin"] = "customer"


class UserRead(BaseModel):
    """Schema dla użytkownika (response)."""

    id: int
    name: str
    email: str | None = None
    role: str

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------- cart

class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")


class QuantityIn(BaseModel):
    quantity: int = Field(..., ge=1, description="Nowa ilość (co najmniej 1)")


class CartItemOut(BaseModel):
    """Schema dla produktu w koszyku (response)."""

    id: int
    product_id: int
    quantity: int
    price: Decimal
    line_total: Decimal
    added_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: int | None = None
    user_id: int
    status: str
    items: List[CartItemOut]
    total: Decimal
    item_count: int
    version: int | None = None
    updated_at: datetime | None = None


class CartSummaryOut(BaseModel):
    item_count: int
    total: Decimal


# ---------------------------------------------------------------- checkout

class CustomerInfo(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str | None = Field(None, max_length=50)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class Address(BaseModel):
    address: str = Field(..., min_length=5, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=2, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)


class CheckoutIn(BaseModel):
    """Dane do checkoutu aktywnego koszyka."""

    payment_method: Literal["card", "paypal", "cod"] = "card"
    currency: str | None = Field(None, min_length=3, max_length=3)
    customer: CustomerInfo
    shipping_address: Address
    billing_address: Address | None = None

    @field_validator("currency")
    @classmethod
    def lower_currency(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class CheckoutOut(BaseModel):
    order_id: str
    intent_id: str
    client_secret: str
    amount: Decimal
    currency: str
    status: str


class PaymentDetailsIn(BaseModel):
    last4: str | None = Field(None, min_length=4, max_length=4)
    brand: str | None = Field(None, max_length=30)
    card_name: str | None = Field(None, max_length=100)


class ConfirmIn(BaseModel):
    payment_details: PaymentDetailsIn | None = None


# ---------------------------------------------------------------- orders

class CancelIn(BaseModel):
    reason: str | None = Field(None, min_length=1, max_length=500)


class CancellationRequestIn(BaseModel):
    reason: str = Field("requested_by_customer", min_length=1, max_length=500)
    additional_info: str | None = Field(None, max_length=1000)


class ProcessCancellationIn(BaseModel):
    action: Literal["approve", "reject"]
    admin_notes: str | None = Field(None, max_length=1000)


class RefundIn(BaseModel):
    """Brak amount = zwrot calej pozostalej kwoty."""

    amount: Decimal | None = Field(None, gt=0, decimal_places=2)
    reason: Literal["requested_by_customer", "duplicate", "fraudulent"] = "requested_by_customer"


class OrderItemOut(BaseModel):
    product_id: int
    name: str | None = None
    price: Decimal
    quantity: int


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    order_id: str
    user_id: int
    intent_id: str
    status: str
    amount: Decimal
    currency: str
    refund_amount: Decimal
    refund_status: str
    items: List[OrderItemOut]
    payment_method: str
    payment_details: dict | None = None
    customer_first_name: str
    customer_last_name: str
    customer_email: str
    customer_phone: str | None = None
    shipping_address: dict
    billing_address: dict | None = None
    paid_at: datetime | None = None
    failure_reason: str | None = None
    cancellation_reason: str | None = None
    cancellation_requested_at: datetime | None = None
    cancellation_processed_at: datetime | None = None
    cancellation_processed_by: int | None = None
    admin_notes: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaginationOut(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class OrderListOut(BaseModel):
    data: List[OrderOut]
    pagination: PaginationOut


class RefundOut(BaseModel):
    order_id: str
    refund_id: str | None
    amount: Decimal
    refund_amount: Decimal
    status: str


class ProcessCancellationOut(BaseModel):
    order_id: str
    action: str
    status: str
    refund_status: str
    processed_by: int
    processed_at: datetime | None


class WebhookAck(BaseModel):
    received: bool = True
    event_type: str | None = None
    duplicate: bool = False
