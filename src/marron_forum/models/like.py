# src/marron_forum/models/like.py
"""Models capturing likes on posts and replies."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from marron_forum.db.session import Base
from marron_forum.db.time import utcnow


class Like(Base):
    """Per-user like on exactly one post or one reply."""

    __tablename__ = "likes"
    __table_args__ = (
        CheckConstraint(
            "(post_id IS NULL) <> (reply_id IS NULL)",
            name="ck_likes_single_target",
        ),
        # An actor cannot like the same target twice.
        UniqueConstraint("user_id", "post_id", name="unique_user_post_like"),
        UniqueConstraint("user_id", "reply_id", name="unique_user_reply_like"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True, index=True
    )
    reply_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("replies.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
