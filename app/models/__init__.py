"""
Chemsus Order Intake - Models Module

This module exports all SQLAlchemy models for the application.
Import Base to get the full metadata.
"""

from app.core.database import Base

# Enums
from app.models.enums import (
    DeliveryMode,
    OrderPaymentStatus,
    PaymentMode,
    PaymentStatus,
)

# Models
from app.models.catalog import PackPricing, ShopItem
from app.models.order import Order, OrderItem
from app.models.otp_session import OtpSession
from app.models.payment import Payment

__all__ = [
    # Base
    "Base",
    # Enums
    "DeliveryMode",
    "OrderPaymentStatus",
    "PaymentMode",
    "PaymentStatus",
    # Models
    "ShopItem",
    "PackPricing",
    "Order",
    "OrderItem",
    "OtpSession",
    "Payment",
]
