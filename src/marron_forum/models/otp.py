# src/marron_forum/models/otp.py
"""One-time passcode records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from marron_forum.db.session import Base
from marron_forum.db.time import utcnow

OTP_PURPOSE_REGISTER = "register"
OTP_PURPOSE_LOGIN = "login"
OTP_PURPOSES = (OTP_PURPOSE_REGISTER, OTP_PURPOSE_LOGIN)


class OtpCode(Base):
    """A passcode issued to one email address for one purpose.

    Rows are never deleted; consumed and superseded codes stay for audit.
    """

    __tablename__ = "otp_codes"
    __table_args__ = (
        CheckConstraint("purpose IN ('register', 'login')", name="ck_otp_codes_purpose"),
        CheckConstraint("attempts >= 0", name="ck_otp_codes_attempts"),
        Index("ix_otp_codes_email_purpose_created", "email", "purpose", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Consumed by a successful verification.
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Invalidated because a newer code was issued for the same pair.
    is_superseded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
