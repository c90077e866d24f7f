"""One-time passcode store and verification state machine.

Per (email, purpose) pair a code moves through::

    none -> pending -> consumed   (correct code, terminal success)
                    -> expired    (TTL elapsed)
                    -> locked     (attempts exhausted)

Issuing a new code supersedes whatever was pending for the pair, so at most
one pending record exists at any instant. Verification only ever looks at the
newest record of the pair, whatever its state. Every transition that matters
for security (consume, attempt increment) is a single conditional UPDATE so
that racing callers are arbitrated by the database.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from marron_forum.core.settings import settings
from marron_forum.db.guard import store_guard
from marron_forum.db.time import as_utc, utcnow
from marron_forum.models import OTP_PURPOSES, OtpCode
from marron_forum.services.codes import generate_code

logger = logging.getLogger(__name__)


class VerificationOutcome(str, Enum):
    """Result of presenting a code."""

    SUCCESS = "success"
    INVALID_OR_EXPIRED = "invalid-or-expired"
    LOCKED = "locked"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome plus the identity-purpose context it applies to."""

    outcome: VerificationOutcome
    email: str
    purpose: str
    record_id: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is VerificationOutcome.SUCCESS


class OtpStore:
    """Persistence primitives for ``OtpCode`` rows bound to one session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _pair(self, email: str, purpose: str) -> tuple:
        return (OtpCode.email == email, OtpCode.purpose == purpose)

    def supersede_pending(self, email: str, purpose: str) -> int:
        """Invalidate every unconsumed code for the pair; return how many."""
        result = self.db.execute(
            update(OtpCode)
            .where(
                *self._pair(email, purpose),
                OtpCode.is_used.is_(False),
                OtpCode.is_superseded.is_(False),
            )
            .values(is_superseded=True)
        )
        return result.rowcount or 0

    def insert(self, email: str, purpose: str, code: str, *, expires_at: datetime, now: datetime) -> OtpCode:
        record = OtpCode(
            email=email,
            purpose=purpose,
            code=code,
            attempts=0,
            is_used=False,
            is_superseded=False,
            expires_at=expires_at,
            created_at=now,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def latest_for_pair(self, email: str, purpose: str) -> OtpCode | None:
        """Return the newest record of the pair in any state (row locked).

        Only this record may ever verify. An older record left pending by a
        concurrent issue is shadowed by it.
        """
        stmt = (
            select(OtpCode)
            .where(*self._pair(email, purpose))
            .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def count_pending(self, email: str, purpose: str, now: datetime) -> int:
        stmt = select(func.count(OtpCode.id)).where(
            *self._pair(email, purpose),
            OtpCode.is_used.is_(False),
            OtpCode.is_superseded.is_(False),
            OtpCode.expires_at > now,
        )
        return int(self.db.execute(stmt).scalar_one())

    def increment_attempts(self, record_id: int) -> None:
        self.db.execute(
            update(OtpCode)
            .where(OtpCode.id == record_id)
            .values(attempts=OtpCode.attempts + 1)
            .execution_options(synchronize_session="fetch")
        )

    def consume(self, record_id: int, max_attempts: int) -> bool:
        """Compare-and-set ``is_used`` from False to True.

        Returns True only for the caller whose UPDATE matched the row.
        """
        result = self.db.execute(
            update(OtpCode)
            .where(
                OtpCode.id == record_id,
                OtpCode.is_used.is_(False),
                OtpCode.is_superseded.is_(False),
                OtpCode.attempts < max_attempts,
            )
            .values(is_used=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1


class OtpService:
    """Issues and verifies one-time passcodes.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(
        self,
        db: Session,
        *,
        ttl_minutes: int | None = None,
        max_attempts: int | None = None,
        clock: Callable[[], datetime] = utcnow,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self.store = OtpStore(db)
        self.ttl = timedelta(
            minutes=ttl_minutes if ttl_minutes is not None else settings.otp_expires_minutes
        )
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.otp_max_attempts
        )
        self._clock = clock
        self._code_factory = code_factory

    @staticmethod
    def _check_purpose(purpose: str) -> None:
        if purpose not in OTP_PURPOSES:
            raise ValueError(f"Unknown OTP purpose: {purpose!r}")

    def issue(self, email: str, purpose: str) -> OtpCode:
        """Supersede any pending code for the pair and store a fresh one."""
        self._check_purpose(purpose)
        now = self._clock()
        with store_guard("otp.issue"):
            superseded = self.store.supersede_pending(email, purpose)
            record = self.store.insert(
                email,
                purpose,
                self._code_factory(),
                expires_at=now + self.ttl,
                now=now,
            )
        logger.info(
            "Issued %s code #%d (superseded %d previous)", purpose, record.id, superseded
        )
        return record

    def verify(self, email: str, purpose: str, code: str) -> VerificationResult:
        """Apply a presented code to the pair's pending record."""
        self._check_purpose(purpose)
        now = self._clock()
        with store_guard("otp.verify"):
            record = self.store.latest_for_pair(email, purpose)
            if record is None or record.is_used or record.is_superseded:
                return self._result(VerificationOutcome.INVALID_OR_EXPIRED, email, purpose, record)

            if as_utc(record.expires_at) <= now:
                # Guessing against an expired code still counts toward lockout.
                self.store.increment_attempts(record.id)
                return self._result(VerificationOutcome.INVALID_OR_EXPIRED, email, purpose, record)

            if record.attempts >= self.max_attempts:
                logger.warning("Code #%d is locked after %d attempts", record.id, record.attempts)
                return self._result(VerificationOutcome.LOCKED, email, purpose, record)

            if hmac.compare_digest(record.code.encode("utf-8"), code.encode("utf-8")):
                if self.store.consume(record.id, self.max_attempts):
                    logger.info("Code #%d consumed", record.id)
                    return self._result(VerificationOutcome.SUCCESS, email, purpose, record)
                logger.info("Code #%d was consumed concurrently", record.id)
                return self._result(VerificationOutcome.INVALID_OR_EXPIRED, email, purpose, record)

            self.store.increment_attempts(record.id)
        return self._result(VerificationOutcome.INVALID_OR_EXPIRED, email, purpose, record)

    @staticmethod
    def _result(
        outcome: VerificationOutcome, email: str, purpose: str, record: OtpCode | None
    ) -> VerificationResult:
        return VerificationResult(
            outcome=outcome,
            email=email,
            purpose=purpose,
            record_id=record.id if record is not None else None,
        )
