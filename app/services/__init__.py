"""
Chemsus Order Intake - Services Module

Business logic layer.
"""

from app.services import email_service
from app.services import otp_service
from app.services import pricing_service
from app.services import order_service
from app.services import payment_service
from app.services import receipt_storage

__all__ = [
    "email_service",
    "otp_service",
    "pricing_service",
    "order_service",
    "payment_service",
    "receipt_storage",
]
