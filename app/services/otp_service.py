"""
OTP Service

Issues email one-time passcodes for order placement and turns a correct
code into a short-lived, single-use verification token.

Attempt counting and verification are conditional UPDATEs, so concurrent
guesses against one challenge are serialized by the database.
"""

import hashlib
import hmac
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.exceptions import (
    DeliveryUnavailableError,
    OtpError,
    OtpFailure,
    RateLimitError,
    StorageError,
)
from app.models.enums import DeliveryMode
from app.models.otp_session import OtpSession
from app.services import email_service


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpChallenge:
    """A freshly issued challenge, as reported to the client."""
    challenge_id: str
    expires_in_sec: int
    resend_in_sec: int
    delivery: DeliveryMode
    debug_code: Optional[str] = None


@dataclass(frozen=True)
class OtpVerification:
    verification_token: str
    token_expires_in_sec: int


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_otp() -> str:
    """Generate a 6-digit OTP code."""
    return str(secrets.randbelow(900000) + 100000)


def hash_otp(email: str, code: str, challenge_id: str) -> str:
    """
    Hash an OTP code bound to its email and challenge.

    Binding both means a code issued for one challenge or address never
    matches the hash stored for another.
    """
    material = f"{normalize_email(email)}:{code.strip()}:{challenge_id}:{settings.OTP_SECRET}"
    return hashlib.sha256(material.encode()).hexdigest()


async def purge_stale_sessions(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Remove OTP sessions nobody can use any more.

    Deletes sessions consumed more than OTP_PURGE_USED_DAYS ago, unverified
    sessions long past their code expiry, and verified-but-unused sessions
    long past their token expiry. Housekeeping only: a failure is logged
    and rolled back, and the caller carries on.

    Returns:
        int: Number of sessions deleted.
    """
    now = now or clock.utcnow()
    used_cutoff = now - timedelta(days=settings.OTP_PURGE_USED_DAYS)
    stale_cutoff = now - timedelta(hours=settings.OTP_PURGE_STALE_HOURS)

    try:
        result = await db.execute(
            delete(OtpSession)
            .where(
                or_(
                    and_(
                        OtpSession.used_at.is_not(None),
                        OtpSession.used_at < used_cutoff,
                    ),
                    and_(
                        OtpSession.verified_at.is_(None),
                        OtpSession.expires_at < stale_cutoff,
                    ),
                    and_(
                        OtpSession.verified_at.is_not(None),
                        OtpSession.used_at.is_(None),
                        OtpSession.token_expires_at < stale_cutoff,
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"OTP session purge failed: {e}")
        return 0

    removed = result.rowcount or 0
    if removed:
        logger.debug(f"Purged {removed} stale OTP session(s)")
    return removed


async def _latest_active_session(db: AsyncSession, email: str) -> Optional[OtpSession]:
    result = await db.execute(
        select(OtpSession)
        .where(
            OtpSession.email == email,
            OtpSession.verified_at.is_(None),
            OtpSession.used_at.is_(None),
        )
        .order_by(OtpSession.created_at.desc(), OtpSession.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def send_otp(db: AsyncSession, email: str) -> OtpChallenge:
    """
    Issue a new OTP challenge for an email address.

    Args:
        db: Database session.
        email: Syntactically valid email address.

    Returns:
        OtpChallenge: Challenge id, timings and how the code was delivered.

    Raises:
        RateLimitError: The resend cooldown of the previous challenge is running.
        DeliveryUnavailableError: Email could not be sent in production.
        StorageError: The session could not be stored.
    """
    email = normalize_email(email)
    now = clock.utcnow()
    await purge_stale_sessions(db, now)

    latest = await _latest_active_session(db, email)
    if latest is not None:
        cooldown_until = clock.as_utc(latest.cooldown_until)
        if cooldown_until > now:
            retry_after = max(1, math.ceil((cooldown_until - now).total_seconds()))
            raise RateLimitError(
                f"Please wait {retry_after} seconds before requesting a new code",
                retry_after=retry_after,
            )

    challenge_id = secrets.token_urlsafe(24)
    code = generate_otp()
    otp_session = OtpSession(
        challenge_id=challenge_id,
        email=email,
        otp_hash=hash_otp(email, code, challenge_id),
        attempts=0,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        expires_at=now + timedelta(seconds=settings.OTP_TTL_SECONDS),
        cooldown_until=now + timedelta(seconds=settings.OTP_RESEND_SECONDS),
        created_at=now,
    )

    try:
        db.add(otp_session)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not create verification challenge") from e

    delivered = await email_service.send_otp_email(
        email,
        code,
        max(1, settings.OTP_TTL_SECONDS // 60),
    )

    if not delivered and settings.is_production:
        # Drop the challenge so the customer is not stuck in a cooldown
        # for a code they never received.
        try:
            await db.execute(delete(OtpSession).where(OtpSession.id == otp_session.id))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise StorageError("Could not withdraw undelivered challenge") from e
        logger.error(f"OTP email to {email} failed; challenge {challenge_id} withdrawn")
        raise DeliveryUnavailableError("Verification email could not be sent, please try again later")

    if not delivered:
        logger.warning(
            f"[DEGRADED DELIVERY] OTP for {email} (challenge {challenge_id}) was not emailed; code: {code}"
        )
        delivery = DeliveryMode.DEGRADED
    else:
        delivery = DeliveryMode.SENT

    logger.info(f"OTP challenge {challenge_id} issued for {email} ({delivery.value})")

    return OtpChallenge(
        challenge_id=challenge_id,
        expires_in_sec=settings.OTP_TTL_SECONDS,
        resend_in_sec=settings.OTP_RESEND_SECONDS,
        delivery=delivery,
        debug_code=code if delivery is DeliveryMode.DEGRADED else None,
    )


async def verify_otp(
    db: AsyncSession,
    email: str,
    challenge_id: str,
    code: str,
) -> OtpVerification:
    """
    Verify an OTP code against its challenge.

    Args:
        db: Database session.
        email: Address the challenge was issued for.
        challenge_id: Identifier returned by send_otp.
        code: The 6-digit code the customer typed.

    Returns:
        OtpVerification: The single-use verification token and its lifetime.

    Raises:
        OtpError: Unknown challenge, already verified, expired or wrong code.
        RateLimitError: The attempt budget for the challenge is spent.
    """
    email = normalize_email(email)
    now = clock.utcnow()
    await purge_stale_sessions(db, now)

    result = await db.execute(
        select(OtpSession)
        .where(
            OtpSession.challenge_id == challenge_id,
            OtpSession.email == email,
        )
        .execution_options(populate_existing=True)
    )
    otp_session = result.scalar_one_or_none()

    if otp_session is None:
        raise OtpError(OtpFailure.NOT_FOUND, "Verification challenge not found")
    if otp_session.used_at is not None or otp_session.verified_at is not None:
        raise OtpError(
            OtpFailure.ALREADY_VERIFIED,
            "This code was already used, please request a new one",
        )
    if clock.as_utc(otp_session.expires_at) <= now:
        raise OtpError(OtpFailure.EXPIRED, "Verification code expired, please request a new one")
    if otp_session.attempts >= otp_session.max_attempts:
        raise RateLimitError("Too many incorrect attempts, please request a new code")

    expected = hash_otp(email, code, challenge_id)
    if not hmac.compare_digest(expected, otp_session.otp_hash):
        await _record_failed_attempt(db, otp_session, now)

    token = secrets.token_urlsafe(32)
    token_expires_at = now + timedelta(seconds=settings.OTP_TOKEN_TTL_SECONDS)

    try:
        result = await db.execute(
            update(OtpSession)
            .where(
                OtpSession.id == otp_session.id,
                OtpSession.verified_at.is_(None),
                OtpSession.used_at.is_(None),
                OtpSession.attempts < OtpSession.max_attempts,
            )
            .values(
                verified_at=now,
                verification_token=token,
                token_expires_at=token_expires_at,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise OtpError(
                OtpFailure.ALREADY_VERIFIED,
                "This code was already used, please request a new one",
            )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not record verification") from e

    logger.info(f"OTP challenge {challenge_id} verified for {email}")

    return OtpVerification(
        verification_token=token,
        token_expires_in_sec=settings.OTP_TOKEN_TTL_SECONDS,
    )


async def _record_failed_attempt(db: AsyncSession, otp_session: OtpSession, now: datetime) -> None:
    """Count a wrong guess atomically and raise the matching error."""
    try:
        result = await db.execute(
            update(OtpSession)
            .where(
                OtpSession.id == otp_session.id,
                OtpSession.attempts < OtpSession.max_attempts,
            )
            .values(attempts=OtpSession.attempts + 1, updated_at=now)
            .returning(OtpSession.attempts)
            .execution_options(synchronize_session=False)
        )
        attempts = result.scalar_one_or_none()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError("Could not record verification attempt") from e

    if attempts is None or attempts >= otp_session.max_attempts:
        logger.warning(f"OTP challenge {otp_session.challenge_id} exhausted its attempts")
        raise RateLimitError("Too many incorrect attempts, please request a new code")

    remaining = otp_session.max_attempts - attempts
    raise OtpError(
        OtpFailure.INVALID,
        f"Invalid verification code, {remaining} attempt(s) left",
    )
