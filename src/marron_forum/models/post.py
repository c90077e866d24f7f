# src/marron_forum/models/post.py
"""SQLAlchemy model for posts."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marron_forum.db.session import Base
from marron_forum.db.time import utcnow
from marron_forum.models.user import User

POST_CATEGORIES = ("chisme", "queja", "humor", "consejo", "random")


class Post(Base):
    """Anonymous post with denormalized engagement counters."""

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint(
            "category IN ('chisme', 'queja', 'humor', 'consejo', 'random')",
            name="ck_posts_category",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)

    # Likes on this post.
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Non-deleted replies at any thread depth.
    replies_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    author: Mapped[User] = relationship("User", lazy="joined")
