"""Error taxonomy shared by services and the HTTP layer.

Every failure the core can report is a ``ForumError`` subclass carrying a
stable machine-readable ``code`` and the HTTP status the API maps it to.
"""

from __future__ import annotations

from fastapi import status


class ForumError(RuntimeError):
    """Base exception for all distinguishable forum outcomes."""

    code: str = "internal-error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class ValidationFailedError(ForumError):
    """Malformed input rejected before it reaches the state machine."""

    code = "validation-error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ForumError):
    """Unknown identity, post or reply."""

    code = "not-found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ForumError):
    """Duplicate identity creation or duplicate fact."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidOrExpiredCodeError(ForumError):
    """Presented OTP did not match a pending record."""

    code = "invalid-or-expired"
    status_code = status.HTTP_400_BAD_REQUEST


class CodeLockedError(ForumError):
    """Pending OTP exhausted its verification attempts."""

    code = "locked"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ForbiddenError(ForumError):
    """Banned or inactive identity, or an action on someone else's content."""

    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class UnauthenticatedError(ForumError):
    """Missing or invalid session token."""

    code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class TransientStoreError(ForumError):
    """Store timeout or connection failure; safe for the caller to retry."""

    code = "transient-store-error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class DeliveryFailureError(ForumError):
    """The notifier could not deliver a code. The code itself stays valid."""

    code = "delivery-failure"
    status_code = status.HTTP_502_BAD_GATEWAY


__all__ = [
    "CodeLockedError",
    "ConflictError",
    "DeliveryFailureError",
    "ForbiddenError",
    "ForumError",
    "InvalidOrExpiredCodeError",
    "NotFoundError",
    "TransientStoreError",
    "UnauthenticatedError",
    "ValidationFailedError",
]
