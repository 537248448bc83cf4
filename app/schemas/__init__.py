"""
Chemsus Order Intake - Schemas Module

Pydantic models for request/response validation.
"""

from app.schemas.otp import OtpSendRequest, OtpSendResponse, OtpVerifyRequest, OtpVerifyResponse
from app.schemas.order import (
    CartLine,
    OrderCreateRequest,
    OrderCreateResponse,
    OrderItemResponse,
    OrderResponse,
)
from app.schemas.payment import (
    DeleteResponse,
    PaymentResponse,
    PaymentStatusRequest,
    PaymentStatusResponse,
    ReceiptResponse,
)
from app.schemas.token import AdminLoginRequest, Token

__all__ = [
    # OTP
    "OtpSendRequest",
    "OtpSendResponse",
    "OtpVerifyRequest",
    "OtpVerifyResponse",
    # Orders
    "CartLine",
    "OrderCreateRequest",
    "OrderCreateResponse",
    "OrderItemResponse",
    "OrderResponse",
    # Payments
    "DeleteResponse",
    "PaymentResponse",
    "PaymentStatusRequest",
    "PaymentStatusResponse",
    "ReceiptResponse",
    # Admin
    "AdminLoginRequest",
    "Token",
]
