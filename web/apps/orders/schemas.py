"""Pydantic schemas for orders.

This module exposes the request/validation schemas used by the orders API
and the read schema that shapes order payloads. Order payloads use
camelCase keys (``orderId``, ``finalAmount``, ``statusHistory``); request
bodies accept either camelCase or snake_case.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from apps.catalog.schemas import Money

from .domain import (
    CustomerInfo,
    LineItemRequest,
    Order,
    OrderStatus,
    PaymentMethod,
    ShippingAddress,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerIn(_CamelModel):
    """Customer contact snapshot.

    Attributes:
        name: Required, surrounding whitespace stripped.
        email: Syntactically valid address, normalized to lowercase.
    """

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=32)
    user_id: Optional[str] = Field(default=None, max_length=64)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("Customer name is required")
        return v2

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class OrderItemIn(_CamelModel):
    """Input schema for a single order line item.

    Any client-supplied price is ignored; prices always come from the
    catalog.
    """

    product: UUID
    quantity: int = Field(default=1, ge=1)


class ShippingAddressIn(_CamelModel):
    full_name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "India"
    phone: Optional[str] = None


class PaymentIn(_CamelModel):
    method: PaymentMethod = PaymentMethod.GATEWAY


class CreateOrderDTO(_CamelModel):
    """Schema for creating an order."""

    customer: CustomerIn
    items: list[OrderItemIn] = Field(min_length=1)
    shipping_address: Optional[ShippingAddressIn] = None
    payment: Optional[PaymentIn] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    def to_domain(self) -> tuple[CustomerInfo, list[LineItemRequest], Optional[ShippingAddress], PaymentMethod]:
        customer = CustomerInfo(
            name=self.customer.name,
            email=self.customer.email,
            phone=self.customer.phone,
            user_id=self.customer.user_id,
        )
        items = [LineItemRequest(product_id=str(i.product), quantity=i.quantity) for i in self.items]
        address = ShippingAddress(**self.shipping_address.model_dump()) if self.shipping_address else None
        method = self.payment.method if self.payment else PaymentMethod.GATEWAY
        return customer, items, address, method


class StatusUpdateDTO(BaseModel):
    # any JSON value; the domain maps unknown ones to INVALID_STATUS
    status: Any
    note: Optional[str] = Field(default=None, max_length=255)


# ---- Read side ----
class CustomerOut(_CamelModel):
    name: str
    email: str
    phone: Optional[str] = None
    user_id: Optional[str] = None


class OrderItemOut(_CamelModel):
    product: Optional[str]
    name: str
    price: Money
    quantity: int
    image: str


class StatusEntryOut(_CamelModel):
    status: OrderStatus
    timestamp: datetime
    note: str


class PaymentOut(_CamelModel):
    method: PaymentMethod
    status: str
    transaction_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None


class TrackingOut(_CamelModel):
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None


class OrderReadDTO(_CamelModel):
    id: str
    order_id: str
    customer: CustomerOut
    items: list[OrderItemOut]
    total_amount: Money
    shipping_amount: Money
    discount_amount: Money
    final_amount: Money
    status: OrderStatus
    status_history: list[StatusEntryOut]
    shipping_address: Optional[ShippingAddressIn] = None
    payment: PaymentOut
    tracking: Optional[TrackingOut] = None
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderReadDTO":
        address = order.shipping_address
        tracking = order.tracking
        return cls(
            id=order.id,
            order_id=order.order_id,
            customer=CustomerOut(
                name=order.customer.name,
                email=order.customer.email,
                phone=order.customer.phone,
                user_id=order.customer.user_id,
            ),
            items=[
                OrderItemOut(product=i.product_id, name=i.name, price=i.price, quantity=i.quantity, image=i.image)
                for i in order.items
            ],
            total_amount=order.total_amount,
            shipping_amount=order.shipping_amount,
            discount_amount=order.discount_amount,
            final_amount=order.final_amount,
            status=order.status,
            status_history=[
                StatusEntryOut(status=h.status, timestamp=h.timestamp, note=h.note) for h in order.status_history
            ],
            shipping_address=ShippingAddressIn(
                full_name=address.full_name,
                street=address.street,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
                country=address.country,
                phone=address.phone,
            ) if address else None,
            payment=PaymentOut(
                method=order.payment.method,
                status=order.payment.status.value,
                transaction_id=order.payment.transaction_id,
                gateway_order_id=order.payment.gateway_order_id,
                gateway_payment_id=order.payment.gateway_payment_id,
            ),
            tracking=TrackingOut(
                carrier=tracking.carrier,
                tracking_number=tracking.tracking_number,
                tracking_url=tracking.tracking_url,
            ) if tracking else None,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
