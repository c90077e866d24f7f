# src/marron_forum/models/__init__.py
"""SQLAlchemy models for the Marrón Forum application."""

from .like import Like
from .otp import OTP_PURPOSES, OtpCode
from .post import POST_CATEGORIES, Post
from .reply import Reply
from .sequence import USER_NUMBER_SEQUENCE, CounterSequence
from .user import User

__all__ = [
    "CounterSequence", "USER_NUMBER_SEQUENCE",
    "Like",
    "OtpCode", "OTP_PURPOSES",
    "Post", "POST_CATEGORIES",
    "Reply",
    "User",
]
