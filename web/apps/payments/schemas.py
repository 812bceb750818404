"""Pydantic request schemas for the payments API.

Field names follow the gateway's checkout callback (``razorpay_order_id``,
``razorpay_payment_id``, ``razorpay_signature``) so the browser can post
the callback payload unchanged.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CreatePaymentOrderDTO(BaseModel):
    # positivity is a business rule checked by PaymentService
    amount: Decimal
    currency: str = Field(default="INR", min_length=3, max_length=3)
    receipt: Optional[str] = Field(default=None, max_length=40)
    notes: dict = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class VerifyPaymentDTO(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    order_id: UUID


class RefundDTO(BaseModel):
    payment_id: str = Field(min_length=1)
    amount: Optional[Decimal] = None
    notes: dict = Field(default_factory=dict)
