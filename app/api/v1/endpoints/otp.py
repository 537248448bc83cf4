"""
Email OTP Routes

A customer proves control of their email address before ordering.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.otp import OtpSendRequest, OtpSendResponse, OtpVerifyRequest, OtpVerifyResponse
from app.services import otp_service


router = APIRouter(prefix="/otp", tags=["Email OTP"])


@router.post(
    "/send",
    response_model=OtpSendResponse,
    response_model_exclude_none=True,
    summary="Send an email verification code",
)
async def send_otp(
    data: OtpSendRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OtpSendResponse:
    """
    Issue a 6-digit code for the given email.

    ``delivery`` is ``DEGRADED`` when the email could not be sent; outside
    production the code is then returned as ``debugCode``.

    Raises:
        400 for an invalid email, 429 while the resend cooldown runs.
    """
    challenge = await otp_service.send_otp(db, data.email)
    return OtpSendResponse(
        challenge_id=challenge.challenge_id,
        expires_in_sec=challenge.expires_in_sec,
        resend_in_sec=challenge.resend_in_sec,
        delivery=challenge.delivery,
        debug_code=challenge.debug_code,
    )


@router.post(
    "/verify",
    response_model=OtpVerifyResponse,
    summary="Verify an email code",
)
async def verify_otp(
    data: OtpVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OtpVerifyResponse:
    """
    Exchange a correct code for a single-use verification token.

    Raises:
        400 for an unknown, expired, used or wrong code; 429 once the
        attempt budget is spent.
    """
    verification = await otp_service.verify_otp(
        db,
        data.email,
        data.challenge_id,
        data.otp.strip(),
    )
    return OtpVerifyResponse(
        verification_token=verification.verification_token,
        token_expires_in_sec=verification.token_expires_in_sec,
    )
