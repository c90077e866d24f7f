"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .auth import (
    AuthResponse,
    CodeSentResponse,
    EmailRequest,
    MeResponse,
    PublicUser,
    VerifyCodeRequest,
)
from .post import (
    AuthorOut,
    LikeResponse,
    PaginationOut,
    PostCreate,
    PostDetailResponse,
    PostListResponse,
    PostOut,
    ReplyCreate,
    ReplyOut,
    StatsResponse,
)

__all__ = [
    "AuthResponse", "CodeSentResponse", "EmailRequest", "MeResponse", "PublicUser",
    "VerifyCodeRequest",
    "AuthorOut", "LikeResponse", "PaginationOut", "PostCreate", "PostDetailResponse",
    "PostListResponse", "PostOut", "ReplyCreate", "ReplyOut", "StatsResponse",
]
