"""
Payment Schemas

Pydantic models for receipt submission and administrator reconciliation.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from app.models.enums import OrderPaymentStatus, PaymentStatus
from app.schemas.base import CamelModel, Money


class ReceiptResponse(CamelModel):
    ok: bool = True
    payment_id: int
    receipt_ref: str


class PaymentStatusRequest(BaseModel):
    """Schema for an administrator's verdict."""

    payment_id: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("paymentId", "payment_id"),
    )
    status: str = Field(..., description="SUCCESS or FAILED")


class PaymentStatusResponse(CamelModel):
    ok: bool = True
    payment_id: int
    status: PaymentStatus
    order_id: int
    order_status: OrderPaymentStatus


class PaymentResponse(CamelModel):
    """Admin view of a payment with a summary of its order."""

    id: int
    order_id: int
    provider: str
    amount: Money
    currency: str
    status: PaymentStatus
    receipt_ref: str
    rating: int
    feedback: str
    customer_name: str
    email: str
    phone: str
    created_at: datetime
    product_name: str
    total_price: Money
    order_payment_status: OrderPaymentStatus


class DeleteResponse(CamelModel):
    ok: bool = True
    deleted: int
