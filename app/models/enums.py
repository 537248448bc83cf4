"""
Database Enums

Python Enums mapped to database ENUM types (CHECK constraints on SQLite).
"""

import enum


class OrderPaymentStatus(str, enum.Enum):
    """Payment progress of an order."""
    PENDING = "PENDING"
    VERIFYING = "VERIFYING"
    PAID = "PAID"
    FAILED = "FAILED"


class PaymentMode(str, enum.Enum):
    """How an order ended up being paid."""
    PENDING = "PENDING"
    UPI = "UPI"
    FAILED = "FAILED"


class PaymentStatus(str, enum.Enum):
    """Administrator verdict on an uploaded receipt."""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class DeliveryMode(str, enum.Enum):
    """Outcome of dispatching an OTP email."""
    SENT = "SENT"
    DEGRADED = "DEGRADED"
