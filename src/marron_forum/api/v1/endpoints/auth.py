# src/marron_forum/api/v1/endpoints/auth.py
"""Authentication endpoints for the Marrón Forum API."""

from __future__ import annotations

from fastapi import APIRouter, status

from marron_forum.api.v1.dependencies import AuthFlowDep, CurrentUserDep
from marron_forum.core.settings import settings
from marron_forum.schemas.auth import (
    AuthResponse,
    CodeSentResponse,
    EmailRequest,
    MeResponse,
    PublicUser,
    VerifyCodeRequest,
)
from marron_forum.services.auth_flow import AuthenticatedSession, IssuedCode

router = APIRouter(prefix="/auth", tags=["authentication"])


def _code_sent(issued: IssuedCode, message: str) -> CodeSentResponse:
    return CodeSentResponse(
        message=message,
        dev_otp=None if settings.is_production else issued.code,
    )


def _auth_response(session: AuthenticatedSession, message: str) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=PublicUser.model_validate(session.user),
        token=session.token,
    )


@router.post(
    "/register/send-otp",
    summary="Send a registration code",
    response_model=CodeSentResponse,
)
async def register_send_otp(payload: EmailRequest, flow: AuthFlowDep) -> CodeSentResponse:
    """Issue a registration code for an email without an account."""
    issued = flow.request_registration_code(payload.email)
    return _code_sent(issued, "Verification code sent")


@router.post(
    "/register/verify-otp",
    summary="Verify a registration code and create the account",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
)
async def register_verify_otp(payload: VerifyCodeRequest, flow: AuthFlowDep) -> AuthResponse:
    session = flow.verify_registration(payload.email, payload.otp)
    return _auth_response(session, "Account created")


@router.post(
    "/login/send-otp",
    summary="Send a login code",
    response_model=CodeSentResponse,
)
async def login_send_otp(payload: EmailRequest, flow: AuthFlowDep) -> CodeSentResponse:
    """Issue a login code for an existing, active account."""
    issued = flow.request_login_code(payload.email)
    return _code_sent(issued, "Access code sent")


@router.post(
    "/login/verify-otp",
    summary="Verify a login code",
    response_model=AuthResponse,
)
async def login_verify_otp(payload: VerifyCodeRequest, flow: AuthFlowDep) -> AuthResponse:
    session = flow.verify_login(payload.email, payload.otp)
    return _auth_response(session, f"Welcome, {session.user.username}!")


@router.get("/me", response_model=MeResponse)
async def read_me(current_user: CurrentUserDep) -> MeResponse:
    """Return the profile behind the bearer token."""
    return MeResponse(user=PublicUser.model_validate(current_user), email=current_user.email)


@router.post("/logout")
async def logout(current_user: CurrentUserDep) -> dict[str, object]:
    """Acknowledge a logout; tokens are stateless and simply discarded by the client."""
    return {"success": True, "message": "Session closed"}
