"""Read models for the storefront entities notifications are rendered from.

These records are owned by the surrounding shop application. The
notification engine only ever reads them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from shopnotify.core.types import OrderStatus, PaymentStatus


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Customer(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    whatsapp_number: str | None = None
    city: str | None = None
    country: str | None = None
    role: str = "CUSTOMER"
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def contact_phone(self) -> str | None:
        """WhatsApp number when the customer has one, otherwise the phone."""
        return self.whatsapp_number or self.phone


class Address(BaseModel):
    id: str = Field(default_factory=_new_id)
    address_line1: str = ""
    city: str = ""
    country: str = ""
    phone: str | None = None


class Product(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    price: float = 0.0
    stock: int = 0
    low_stock_threshold: int = 5


class OrderItem(BaseModel):
    product: Product
    quantity: int = 1
    price: float = 0.0


class Payment(BaseModel):
    reference: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING


class Invoice(BaseModel):
    invoice_number: str


class Order(BaseModel):
    id: str = Field(default_factory=_new_id)
    order_number: str
    user: Customer
    shipping_address: Address | None = None
    items: list[OrderItem] = Field(default_factory=list)
    payment: Payment | None = None
    invoice: Invoice | None = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str | None = None
    subtotal: float = 0.0
    tax: float = 0.0
    shipping_cost: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    tracking_number: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class OrderState(BaseModel):
    """The two order fields the scheduler re-checks before sending."""

    order_id: str
    status: OrderStatus
    payment_status: PaymentStatus

    @property
    def settled(self) -> bool:
        """True once reminders for this order no longer make sense."""
        return (
            self.payment_status == PaymentStatus.COMPLETED
            or self.status == OrderStatus.CANCELLED
        )


class Review(BaseModel):
    id: str = Field(default_factory=_new_id)
    user: Customer
    product: Product
    rating: int
    comment: str | None = None
    verified: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
