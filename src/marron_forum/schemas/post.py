"""Post and reply Pydantic schemas."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Category = Literal["chisme", "queja", "humor", "consejo", "random"]


class PostCreate(BaseModel):
    """Schema for creating a new post."""

    content: str = Field(..., description="Post body, 10 to 2000 characters after trimming")
    category: Category

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not 10 <= len(v) <= 2000:
            raise ValueError("Content must be between 10 and 2000 characters")
        return v


class ReplyCreate(BaseModel):
    """Schema for replying to a post or to another reply."""

    content: str = Field(..., description="Reply body, 5 to 1000 characters after trimming")
    parent_reply_id: uuid.UUID | None = Field(None, description="Reply being answered")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not 5 <= len(v) <= 1000:
            raise ValueError("Reply must be between 5 and 1000 characters")
        return v


class AuthorOut(BaseModel):
    username: str
    user_number: int

    model_config = ConfigDict(from_attributes=True)


class PostOut(BaseModel):
    """Schema for post information returned by the API."""

    id: uuid.UUID
    content: str
    category: str
    likes_count: int
    replies_count: int
    created_at: datetime
    author: AuthorOut
    user_liked: bool = False


class ReplyOut(BaseModel):
    id: uuid.UUID
    content: str
    parent_reply_id: uuid.UUID | None = None
    likes_count: int
    replies_count: int
    created_at: datetime
    author: AuthorOut


class PaginationOut(BaseModel):
    current_page: int
    total_pages: int
    total_posts: int
    has_more: bool


class PostListResponse(BaseModel):
    success: bool = True
    posts: list[PostOut]
    pagination: PaginationOut


class PostDetailResponse(BaseModel):
    success: bool = True
    post: PostOut
    replies: list[ReplyOut]


class LikeResponse(BaseModel):
    success: bool = True
    liked: bool
    likes_count: int


class StatsResponse(BaseModel):
    success: bool = True
    total_posts: int
    total_users: int
    total_replies: int
