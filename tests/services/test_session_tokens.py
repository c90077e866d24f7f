# tests/services/test_session_tokens.py
"""Tests for session token issuance and validation."""

from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from marron_forum.core.errors import UnauthenticatedError
from marron_forum.core.settings import settings
from marron_forum.services.session_tokens import (
    SessionIssuer,
    TokenInvalidError,
    TokenMalformedError,
)


def test_issue_and_validate_round_trip(test_user, session_issuer) -> None:
    token = session_issuer.issue(test_user)

    claims = session_issuer.validate(token)

    assert claims.user_uuid == test_user.uuid
    assert claims.user_id == test_user.id
    assert claims.user_number == test_user.user_number
    assert claims.email == test_user.email


def test_token_expires_after_validity(test_user, clock) -> None:
    issuer = SessionIssuer(clock=clock, validity=timedelta(days=7))
    token = issuer.issue(test_user)

    clock.advance(days=6, hours=23)
    assert issuer.validate(token).user_id == test_user.id

    clock.advance(hours=2)
    with pytest.raises(TokenInvalidError):
        issuer.validate(token)


def test_token_signed_with_other_secret_is_invalid(test_user, session_issuer) -> None:
    forged = SessionIssuer(secret_key="someone-else").issue(test_user)

    with pytest.raises(TokenInvalidError):
        session_issuer.validate(forged)


@pytest.mark.parametrize("token", ["not-a-token", "", "a.b"])
def test_garbage_is_malformed(session_issuer, token) -> None:
    with pytest.raises(TokenMalformedError):
        session_issuer.validate(token)


def test_missing_claims_are_malformed(session_issuer, clock) -> None:
    token = jwt.encode(
        {"sub": "x", "exp": int((clock.now + timedelta(hours=1)).timestamp())},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(TokenMalformedError):
        session_issuer.validate(token)


def test_wrongly_typed_claims_are_malformed(session_issuer, clock) -> None:
    token = jwt.encode(
        {
            "sub": "not-a-uuid",
            "uid": 1,
            "num": 1,
            "email": "a@x.com",
            "exp": int((clock.now + timedelta(hours=1)).timestamp()),
        },
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(TokenMalformedError):
        session_issuer.validate(token)


def test_token_errors_are_unauthenticated() -> None:
    assert issubclass(TokenMalformedError, UnauthenticatedError)
    assert issubclass(TokenInvalidError, UnauthenticatedError)
    assert TokenInvalidError("x").status_code == 401


def test_corrupt_payload_with_valid_header_is_malformed(test_user, session_issuer) -> None:
    header, _, signature = session_issuer.issue(test_user).split(".")
    # base64url("not-json")
    token = ".".join([header, "bm90LWpzb24", signature])

    with pytest.raises(TokenMalformedError):
        session_issuer.validate(token)
