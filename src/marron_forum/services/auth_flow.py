"""Passwordless registration and login built from the OTP primitives.

This is the only place in the auth path that commits: each public method is
one unit of work, so a failure before the commit leaves no partial state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from marron_forum.core.errors import (
    CodeLockedError,
    ConflictError,
    DeliveryFailureError,
    ForumError,
    InvalidOrExpiredCodeError,
    UnauthenticatedError,
)
from marron_forum.db.guard import store_guard
from marron_forum.models import User
from marron_forum.models.otp import OTP_PURPOSE_LOGIN, OTP_PURPOSE_REGISTER
from marron_forum.services.identity import IdentityRegistry
from marron_forum.services.notifier import Notifier, get_notifier, safe_send
from marron_forum.services.otp import OtpService, VerificationOutcome, VerificationResult
from marron_forum.services.session_tokens import SessionIssuer, get_session_issuer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedCode:
    """A code that was persisted and handed to the notifier."""

    email: str
    purpose: str
    code: str
    expires_at: datetime
    message_id: str | None


@dataclass(frozen=True)
class AuthenticatedSession:
    """A verified user together with a freshly minted session token."""

    user: User
    token: str
    created: bool = False


class AuthFlow:
    """Coordinates OTP store, identity registry, notifier and session issuer."""

    def __init__(
        self,
        db: Session,
        *,
        otp_service: OtpService | None = None,
        registry: IdentityRegistry | None = None,
        issuer: SessionIssuer | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.db = db
        self.otp = otp_service or OtpService(db)
        self.registry = registry or IdentityRegistry(db)
        self.issuer = issuer or get_session_issuer()
        self.notifier = notifier or get_notifier()

    def _commit(self) -> None:
        with store_guard("auth.commit"):
            self.db.commit()

    def _issue_and_deliver(self, email: str, purpose: str) -> IssuedCode:
        record = self.otp.issue(email, purpose)
        self._commit()

        delivery = safe_send(self.notifier, email, record.code, purpose)
        if not delivery.success:
            # The code is persisted; the caller may ask for a resend.
            raise DeliveryFailureError(delivery.error or "Could not deliver verification code")
        return IssuedCode(
            email=email,
            purpose=purpose,
            code=record.code,
            expires_at=record.expires_at,
            message_id=delivery.message_id,
        )

    def _require_success(self, result: VerificationResult) -> None:
        """Persist attempt bookkeeping, then raise for any non-success outcome."""
        if result.succeeded:
            return
        self._commit()
        if result.outcome is VerificationOutcome.LOCKED:
            raise CodeLockedError("Too many attempts. Request a new code.")
        raise InvalidOrExpiredCodeError("Incorrect or expired code")

    def request_registration_code(self, email: str) -> IssuedCode:
        """Send a registration code to an email that has no account yet."""
        if self.registry.get_by_email(email) is not None:
            raise ConflictError("Email already registered. Please log in.")
        return self._issue_and_deliver(email, OTP_PURPOSE_REGISTER)

    def verify_registration(self, email: str, code: str) -> AuthenticatedSession:
        """Consume a registration code and create the account."""
        self._require_success(self.otp.verify(email, OTP_PURPOSE_REGISTER, code))
        try:
            user = self.registry.create_identity(email)
        except ConflictError:
            # The code stays consumed; the race loser is told the email is taken.
            self._commit()
            raise
        self._commit()
        return AuthenticatedSession(user=user, token=self.issuer.issue(user), created=True)

    def request_login_code(self, email: str) -> IssuedCode:
        """Send a login code to an existing, active, unbanned account."""
        self.registry.ensure_can_authenticate(self.registry.get_by_email(email))
        return self._issue_and_deliver(email, OTP_PURPOSE_LOGIN)

    def verify_login(self, email: str, code: str) -> AuthenticatedSession:
        """Consume a login code and open a session for the account."""
        self._require_success(self.otp.verify(email, OTP_PURPOSE_LOGIN, code))
        try:
            user = self.registry.ensure_can_authenticate(self.registry.get_by_email(email))
        except ForumError:
            self._commit()
            raise
        self.registry.touch_last_authenticated(user)
        self._commit()
        logger.info("User #%d logged in", user.user_number)
        return AuthenticatedSession(user=user, token=self.issuer.issue(user))

    def authenticate(self, token: str) -> User:
        """Resolve a bearer token to an active user."""
        claims = self.issuer.validate(token)
        user = self.registry.get_by_id(claims.user_id)
        if user is None or user.uuid != claims.user_uuid:
            raise UnauthenticatedError("User not found")
        return self.registry.ensure_can_authenticate(user)
