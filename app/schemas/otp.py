"""
OTP Schemas

Pydantic models for the email verification flow that precedes ordering.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from app.models.enums import DeliveryMode
from app.schemas.base import CamelModel


class OtpSendRequest(BaseModel):
    """Schema for requesting a verification code."""

    email: EmailStr = Field(..., description="Customer's email address")


class OtpSendResponse(CamelModel):
    """Schema for an issued challenge."""

    challenge_id: str
    expires_in_sec: int
    resend_in_sec: int
    delivery: DeliveryMode
    debug_code: Optional[str] = Field(
        default=None,
        description="Only present when email delivery degraded outside production",
    )


class OtpVerifyRequest(BaseModel):
    """Schema for verifying a code."""

    email: EmailStr = Field(..., description="Customer's email address")
    challenge_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("challengeId", "challenge_id"),
    )
    otp: str = Field(..., pattern=r"^\s*\d{6}\s*$", description="6-digit OTP code")


class OtpVerifyResponse(CamelModel):
    """Schema for a successful verification."""

    verification_token: str
    token_expires_in_sec: int
