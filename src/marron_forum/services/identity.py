"""Identity registry: verified emails to stable user records."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marron_forum.core.errors import ConflictError, ForbiddenError, NotFoundError
from marron_forum.db.guard import store_guard
from marron_forum.db.time import utcnow
from marron_forum.models import USER_NUMBER_SEQUENCE, CounterSequence, User

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Creates users, allocates display numbers and tracks account status.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_email(self, email: str) -> User | None:
        with store_guard("identity.get_by_email"):
            return self.db.execute(select(User).where(User.email == email)).scalars().first()

    def get_by_id(self, user_id: int) -> User | None:
        with store_guard("identity.get_by_id"):
            return self.db.get(User, user_id)

    def get_by_uuid(self, user_uuid: uuid.UUID) -> User | None:
        with store_guard("identity.get_by_uuid"):
            return self.db.execute(select(User).where(User.uuid == user_uuid)).scalars().first()

    def allocate_display_number(self) -> int:
        """Advance the user-number counter by one and return the new value.

        The UPDATE holds the counter row until the surrounding transaction ends,
        so concurrent registrations are serialized and a rollback returns the
        number to the pool.
        """
        advance = (
            update(CounterSequence)
            .where(CounterSequence.name == USER_NUMBER_SEQUENCE)
            .values(value=CounterSequence.value + 1)
            .returning(CounterSequence.value)
        )
        with store_guard("identity.allocate_display_number"):
            value = self.db.execute(advance).scalar_one_or_none()
            if value is not None:
                return int(value)
            try:
                with self.db.begin_nested():
                    self.db.add(CounterSequence(name=USER_NUMBER_SEQUENCE, value=1))
                return 1
            except IntegrityError:
                # Another transaction seeded the counter first.
                return int(self.db.execute(advance).scalar_one())

    def create_identity(self, email: str) -> User:
        """Create the user for a freshly verified registration.

        Raises:
            ConflictError: If the email (or a racing registration) already exists.
        """
        try:
            with store_guard("identity.create"), self.db.begin_nested():
                number = self.allocate_display_number()
                user = User(
                    email=email,
                    username=User.username_for(number),
                    user_number=number,
                    is_active=True,
                    is_banned=False,
                )
                self.db.add(user)
        except IntegrityError as err:
            logger.info("Registration for an existing email was rejected")
            raise ConflictError("Email already registered") from err
        logger.info("Created user #%d", user.user_number)
        return user

    def touch_last_authenticated(self, user: User) -> None:
        with store_guard("identity.touch"):
            user.last_login = utcnow()
            self.db.flush()

    def set_status(
        self,
        user: User,
        *,
        is_active: bool | None = None,
        is_banned: bool | None = None,
    ) -> User:
        with store_guard("identity.set_status"):
            if is_active is not None:
                user.is_active = is_active
            if is_banned is not None:
                user.is_banned = is_banned
            self.db.flush()
        logger.info(
            "User #%d status: active=%s banned=%s", user.user_number, user.is_active, user.is_banned
        )
        return user

    @staticmethod
    def ensure_can_authenticate(user: User | None) -> User:
        """Reject unknown, deactivated or banned users."""
        if user is None:
            raise NotFoundError("Email not registered")
        if not user.is_active:
            raise ForbiddenError("Account deactivated")
        if user.is_banned:
            raise ForbiddenError("Account suspended")
        return user
