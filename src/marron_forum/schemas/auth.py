"""Authentication-related Pydantic schemas."""

import re
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_CODE_PATTERN = re.compile(r"^[0-9]{6}$")


class EmailRequest(BaseModel):
    """Request carrying the contact identity a code should be sent to."""

    email: str = Field(..., max_length=255, description="Email address")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Trim and lower-case the address so one mailbox maps to one identity."""
        cleaned = v.strip().lower()
        if not _EMAIL_PATTERN.match(cleaned):
            raise ValueError("Invalid email address")
        return cleaned


class VerifyCodeRequest(EmailRequest):
    """Request presenting a six digit one-time passcode."""

    otp: str = Field(..., description="Six digit verification code")

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v: str) -> str:
        if not _CODE_PATTERN.match(v):
            raise ValueError("Code must be exactly 6 digits")
        return v


class CodeSentResponse(BaseModel):
    """Acknowledgement that a code was issued and handed to the notifier."""

    success: bool = True
    message: str
    dev_otp: str | None = Field(None, description="Echoed code outside production")


class PublicUser(BaseModel):
    """Public view of an identity."""

    uuid: uuid.UUID
    username: str
    user_number: int

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Response returned after a successful verification."""

    success: bool = True
    message: str
    user: PublicUser
    token: str = Field(..., description="Bearer session token")
    token_type: str = "bearer"


class MeResponse(BaseModel):
    success: bool = True
    user: PublicUser
    email: str
