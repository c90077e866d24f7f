"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from marron_forum.core.errors import ForbiddenError, UnauthenticatedError
from marron_forum.db.session import get_db
from marron_forum.models import User
from marron_forum.services.auth_flow import AuthFlow
from marron_forum.services.engagement import EngagementService
from marron_forum.services.notifier import Notifier, get_notifier
from marron_forum.services.posts import PostService
from marron_forum.services.session_tokens import SessionIssuer, get_session_issuer

# HTTP Bearer scheme; missing credentials are reported as 401 by get_current_user.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
BearerDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def get_notifier_dep() -> Notifier:
    """Return the configured OTP notifier."""
    return get_notifier()


def get_session_issuer_dep() -> SessionIssuer:
    """Return the session token issuer."""
    return get_session_issuer()


NotifierDep = Annotated[Notifier, Depends(get_notifier_dep)]
IssuerDep = Annotated[SessionIssuer, Depends(get_session_issuer_dep)]


def get_auth_flow(db: SessionDep, notifier: NotifierDep, issuer: IssuerDep) -> AuthFlow:
    return AuthFlow(db, notifier=notifier, issuer=issuer)


AuthFlowDep = Annotated[AuthFlow, Depends(get_auth_flow)]


def get_post_service(db: SessionDep) -> PostService:
    return PostService(db)


def get_engagement_service(db: SessionDep) -> EngagementService:
    return EngagementService(db)


PostServiceDep = Annotated[PostService, Depends(get_post_service)]
EngagementDep = Annotated[EngagementService, Depends(get_engagement_service)]


def get_current_user(credentials: BearerDep, flow: AuthFlowDep) -> User:
    """Get the current authenticated user from the bearer session token.

    Raises:
        UnauthenticatedError: If the token is missing, malformed, expired or unknown.
        ForbiddenError: If the account is banned or deactivated.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Access token required")
    return flow.authenticate(credentials.credentials)


def get_optional_user(credentials: BearerDep, flow: AuthFlowDep) -> User | None:
    """Like ``get_current_user`` but anonymous callers resolve to None.

    Store failures still propagate so they surface as 503.
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        return flow.authenticate(credentials.credentials)
    except (UnauthenticatedError, ForbiddenError):
        return None


# Type aliases for current user dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]
