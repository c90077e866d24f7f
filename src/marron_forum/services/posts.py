"""Read and write helpers for posts and their replies."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from marron_forum.core.errors import NotFoundError
from marron_forum.db.guard import store_guard
from marron_forum.models import Like, Post, Reply, User

__all__ = ["ForumStats", "PostService"]


@dataclass(frozen=True)
class ForumStats:
    total_posts: int
    total_users: int
    total_replies: int


class PostService:
    """Thin wrapper around database access for posts and replies."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_post(self, author: User, content: str, category: str) -> Post:
        with store_guard("posts.create"):
            post = Post(
                user_id=author.id,
                content=content,
                category=category,
                likes_count=0,
                replies_count=0,
                is_deleted=False,
            )
            self.db.add(post)
            self.db.flush()
        return post

    def get_post(self, post_uuid: uuid.UUID) -> Post:
        """Return a non-deleted post or raise ``NotFoundError``."""
        with store_guard("posts.get"):
            post = self.db.execute(
                select(Post).where(Post.uuid == post_uuid, Post.is_deleted.is_(False))
            ).scalars().first()
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def get_reply(self, reply_uuid: uuid.UUID, *, include_deleted: bool = False) -> Reply:
        stmt = select(Reply).where(Reply.uuid == reply_uuid)
        if not include_deleted:
            stmt = stmt.where(Reply.is_deleted.is_(False))
        with store_guard("posts.get_reply"):
            reply = self.db.execute(stmt).scalars().first()
        if reply is None:
            raise NotFoundError("Reply not found")
        return reply

    def list_posts(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        category: str | None = None,
    ) -> tuple[Sequence[Post], int]:
        """Return one page of posts (newest first) and the total count."""
        filters = [Post.is_deleted.is_(False)]
        if category:
            filters.append(Post.category == category)
        with store_guard("posts.list"):
            posts = self.db.execute(
                select(Post)
                .where(*filters)
                .order_by(Post.created_at.desc(), Post.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).scalars().all()
            total = self.db.execute(select(func.count(Post.id)).where(*filters)).scalar_one()
        return posts, int(total)

    def list_replies(self, post: Post) -> Sequence[Reply]:
        with store_guard("posts.list_replies"):
            return self.db.execute(
                select(Reply)
                .where(Reply.post_id == post.id, Reply.is_deleted.is_(False))
                .order_by(Reply.created_at.asc(), Reply.id.asc())
            ).scalars().all()

    def liked_post_ids(self, user: User, post_ids: Sequence[int]) -> set[int]:
        if not post_ids:
            return set()
        with store_guard("posts.liked_ids"):
            rows = self.db.execute(
                select(Like.post_id).where(Like.user_id == user.id, Like.post_id.in_(post_ids))
            ).scalars()
            return set(rows)

    def soft_delete_post(self, post_uuid: uuid.UUID, author: User) -> None:
        """Flag the author's own post deleted.

        Raises:
            NotFoundError: If the post does not exist, is gone, or is not theirs.
        """
        with store_guard("posts.delete"):
            result = self.db.execute(
                update(Post)
                .where(
                    Post.uuid == post_uuid,
                    Post.user_id == author.id,
                    Post.is_deleted.is_(False),
                )
                .values(is_deleted=True)
            )
        if result.rowcount != 1:
            raise NotFoundError("Post not found or not owned by you")

    def stats(self) -> ForumStats:
        with store_guard("posts.stats"):
            total_posts = self.db.execute(
                select(func.count(Post.id)).where(Post.is_deleted.is_(False))
            ).scalar_one()
            total_users = self.db.execute(
                select(func.count(User.id)).where(User.is_active.is_(True))
            ).scalar_one()
            total_replies = self.db.execute(
                select(func.count(Reply.id)).where(Reply.is_deleted.is_(False))
            ).scalar_one()
        return ForumStats(
            total_posts=int(total_posts),
            total_users=int(total_users),
            total_replies=int(total_replies),
        )
