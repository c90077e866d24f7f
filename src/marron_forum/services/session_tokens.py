"""Stateless session tokens signed with the application secret."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from marron_forum.core.errors import UnauthenticatedError
from marron_forum.core.settings import settings
from marron_forum.db.time import utcnow
from marron_forum.models import User

_REQUIRED_CLAIMS = ("sub", "uid", "num", "email", "exp")


class TokenMalformedError(UnauthenticatedError):
    """Token is not a JWT or lacks the session claims."""


class TokenInvalidError(UnauthenticatedError):
    """Token expired or its signature does not verify."""


@dataclass(frozen=True)
class SessionClaims:
    """Identity asserted by a validated session token."""

    user_uuid: uuid.UUID
    user_id: int
    user_number: int
    email: str
    expires_at: datetime


class SessionIssuer:
    """Mints and validates session JWTs. Holds no per-session state."""

    def __init__(
        self,
        secret_key: str | None = None,
        *,
        algorithm: str | None = None,
        validity: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._secret_key = secret_key or settings.secret_key
        self._algorithm = algorithm or settings.jwt_algorithm
        self.validity = validity or timedelta(days=settings.session_expire_days)
        self._clock = clock

    def issue(self, user: User) -> str:
        """Create a token binding the user's id, display number and email."""
        now = self._clock()
        to_encode: dict[str, object] = {
            "sub": str(user.uuid),
            "uid": user.id,
            "num": user.user_number,
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.validity).timestamp()),
        }
        encoded_jwt: str = jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)
        return encoded_jwt

    def validate(self, token: str) -> SessionClaims:
        """Return the embedded claims.

        Raises:
            TokenMalformedError: If the token cannot be parsed or misses claims.
            TokenInvalidError: If the token is expired or its signature is wrong.
        """
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as err:
            raise TokenMalformedError("Malformed session token") from err

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as err:
            raise TokenInvalidError("Invalid session token signature") from err

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            raise TokenMalformedError("Session token is missing claims")

        try:
            claims = SessionClaims(
                user_uuid=uuid.UUID(str(payload["sub"])),
                user_id=int(payload["uid"]),
                user_number=int(payload["num"]),
                email=str(payload["email"]),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
            )
        except (TypeError, ValueError) as err:
            raise TokenMalformedError("Session token claims are malformed") from err

        if claims.expires_at <= self._clock():
            raise TokenInvalidError("Session token expired")
        return claims


def get_session_issuer() -> SessionIssuer:
    """Return a session issuer configured from settings."""
    return SessionIssuer()


__all__ = [
    "SessionClaims",
    "SessionIssuer",
    "TokenInvalidError",
    "TokenMalformedError",
    "get_session_issuer",
]
