"""
OTP Session Model

One email OTP challenge, from issuance through verification to the
order that consumed its verification token.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class OtpSession(Base):
    """
    Email OTP challenge.

    Attributes:
        challenge_id: Opaque public identifier of the challenge.
        email: Lowercased email address the code was sent to.
        otp_hash: sha256 over email, code, challenge id and server secret.
        attempts: Wrong guesses so far, never above max_attempts.
        expires_at: End of the window in which the code can be verified.
        cooldown_until: No new code is issued for this email before this.
        verified_at: Set once, when the correct code was supplied.
        verification_token: Single-use credential handed out on verification.
        token_expires_at: End of the window in which the token can be used.
        used_at: Set once, by the order that consumed the token.
        order_id: That order.
    """

    __tablename__ = "otp_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    challenge_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
    )
    otp_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        default=5,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    cooldown_until: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    verification_token: Mapped[Optional[str]] = mapped_column(
        String(128),
        unique=True,
        nullable=True,
    )
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<OtpSession(challenge_id={self.challenge_id}, email={self.email})>"
