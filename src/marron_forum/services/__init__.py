# src/marron_forum/services/__init__.py
"""Business logic services for the Marrón Forum application."""

from .auth_flow import AuthFlow
from .engagement import EngagementService
from .identity import IdentityRegistry
from .notifier import ConsoleNotifier
from .otp import OtpService, OtpStore
from .posts import PostService
from .session_tokens import SessionIssuer

__all__ = [
    "AuthFlow",
    "ConsoleNotifier",
    "EngagementService",
    "IdentityRegistry",
    "OtpService",
    "OtpStore",
    "PostService",
    "SessionIssuer",
]
