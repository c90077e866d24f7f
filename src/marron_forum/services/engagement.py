"""Engagement counter protocol for replies and likes.

Every fact write adjusts the denormalized counter of its parent in the same
transaction, using an atomic ``column = column ± 1`` UPDATE. Soft-delete and
restore are compare-and-set transitions on ``is_deleted`` so repeating them
never moves a counter twice. ``reconcile_counters`` recomputes every counter
from the fact tables and is the repair path after bugs or manual edits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from marron_forum.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from marron_forum.db.guard import store_guard
from marron_forum.models import Like, Post, Reply, User

logger = logging.getLogger(__name__)


class LikeState(str, Enum):
    """State of a like after a toggle."""

    LIKED = "liked"
    UNLIKED = "unliked"


@dataclass(frozen=True)
class LikeToggleResult:
    state: LikeState
    likes_count: int

    @property
    def liked(self) -> bool:
        return self.state is LikeState.LIKED


@dataclass(frozen=True)
class ReconciliationReport:
    """Number of rows whose stored counter differed from the recomputed one."""

    post_likes: int = 0
    post_replies: int = 0
    reply_likes: int = 0
    reply_replies: int = 0

    @property
    def total(self) -> int:
        return self.post_likes + self.post_replies + self.reply_likes + self.reply_replies


class EngagementService:
    """Creates and removes engagement facts while keeping counters exact.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # --- Counter primitives ---------------------------------------------------------
    def _adjust(self, model: type[Post] | type[Reply], row_id: int, column: str, delta: int) -> None:
        counter = getattr(model, column)
        stmt = update(model).where(model.id == row_id)
        if delta < 0:
            stmt = stmt.where(counter >= -delta)
        self.db.execute(
            stmt.values({column: counter + delta}).execution_options(synchronize_session="fetch")
        )

    def _adjust_reply_parents(self, reply: Reply, delta: int) -> None:
        self._adjust(Post, reply.post_id, "replies_count", delta)
        if reply.parent_reply_id is not None:
            self._adjust(Reply, reply.parent_reply_id, "replies_count", delta)

    # --- Replies --------------------------------------------------------------------
    def create_reply(
        self,
        post: Post,
        author: User,
        content: str,
        parent_reply: Reply | None = None,
    ) -> Reply:
        """Insert a reply and bump the post's (and parent reply's) reply count."""
        if post.is_deleted:
            raise NotFoundError("Post not found")
        if parent_reply is not None:
            if parent_reply.post_id != post.id:
                raise ValidationFailedError("Parent reply belongs to a different post")
            if parent_reply.is_deleted:
                raise NotFoundError("Parent reply not found")

        with store_guard("engagement.create_reply"):
            reply = Reply(
                post_id=post.id,
                user_id=author.id,
                parent_reply_id=parent_reply.id if parent_reply is not None else None,
                content=content,
                likes_count=0,
                replies_count=0,
                is_deleted=False,
            )
            self.db.add(reply)
            self.db.flush()
            self._adjust_reply_parents(reply, +1)
        return reply

    def soft_delete_reply(self, reply: Reply, actor: User | None = None) -> bool:
        """Flag a reply deleted; return False if it already was.

        Raises:
            ForbiddenError: If ``actor`` is given and is not the author.
        """
        if actor is not None and reply.user_id != actor.id:
            raise ForbiddenError("Only the author can delete this reply")
        with store_guard("engagement.soft_delete_reply"):
            result = self.db.execute(
                update(Reply)
                .where(Reply.id == reply.id, Reply.is_deleted.is_(False))
                .values(is_deleted=True)
            )
            if result.rowcount != 1:
                return False
            self._adjust_reply_parents(reply, -1)
        logger.info("Reply %s soft-deleted", reply.uuid)
        return True

    def restore_reply(self, reply: Reply) -> bool:
        """Undo a soft delete; return False if the reply was active."""
        with store_guard("engagement.restore_reply"):
            result = self.db.execute(
                update(Reply)
                .where(Reply.id == reply.id, Reply.is_deleted.is_(True))
                .values(is_deleted=False)
            )
            if result.rowcount != 1:
                return False
            self._adjust_reply_parents(reply, +1)
        logger.info("Reply %s restored", reply.uuid)
        return True

    # --- Likes ----------------------------------------------------------------------
    def toggle_like(
        self,
        actor: User,
        *,
        post: Post | None = None,
        reply: Reply | None = None,
    ) -> LikeToggleResult:
        """Remove the actor's like on the target if present, otherwise add it."""
        if (post is None) == (reply is None):
            raise ValidationFailedError("A like targets exactly one post or one reply")

        model: type[Post] | type[Reply]
        if post is not None:
            target, model, target_column = post, Post, Like.post_id
        else:
            target, model, target_column = reply, Reply, Like.reply_id
        if target.is_deleted:
            raise NotFoundError("Like target not found")

        with store_guard("engagement.toggle_like"):
            removed = self.db.execute(
                delete(Like).where(Like.user_id == actor.id, target_column == target.id)
            )
            if removed.rowcount:
                self._adjust(model, target.id, "likes_count", -1)
                state = LikeState.UNLIKED
            else:
                state = LikeState.LIKED
                try:
                    with self.db.begin_nested():
                        self.db.add(
                            Like(
                                user_id=actor.id,
                                post_id=target.id if post is not None else None,
                                reply_id=target.id if reply is not None else None,
                            )
                        )
                except IntegrityError:
                    # A concurrent toggle inserted the same like; it owns the increment.
                    logger.info("Duplicate like by user #%d ignored", actor.user_number)
                else:
                    self._adjust(model, target.id, "likes_count", +1)

            likes_count = self.db.execute(
                select(model.likes_count).where(model.id == target.id)
            ).scalar_one()
        return LikeToggleResult(state=state, likes_count=int(likes_count))

    def has_liked(self, actor: User, *, post: Post | None = None, reply: Reply | None = None) -> bool:
        stmt = select(func.count(Like.id)).where(Like.user_id == actor.id)
        if post is not None:
            stmt = stmt.where(Like.post_id == post.id)
        elif reply is not None:
            stmt = stmt.where(Like.reply_id == reply.id)
        else:
            raise ValidationFailedError("A like targets exactly one post or one reply")
        with store_guard("engagement.has_liked"):
            return bool(self.db.execute(stmt).scalar_one())

    # --- Reconciliation -------------------------------------------------------------
    def reconcile_counters(self) -> ReconciliationReport:
        """Overwrite every counter with the count of its source facts.

        Only rows whose stored value differs are written, so a second run in a
        row reports zero repairs.
        """
        child = aliased(Reply)

        post_likes = (
            select(func.count(Like.id))
            .where(Like.post_id == Post.id)
            .correlate(Post)
            .scalar_subquery()
        )
        post_replies = (
            select(func.count(child.id))
            .where(child.post_id == Post.id, child.is_deleted.is_(False))
            .correlate(Post)
            .scalar_subquery()
        )
        reply_likes = (
            select(func.count(Like.id))
            .where(Like.reply_id == Reply.id)
            .correlate(Reply)
            .scalar_subquery()
        )
        reply_replies = (
            select(func.count(child.id))
            .where(child.parent_reply_id == Reply.id, child.is_deleted.is_(False))
            .correlate(Reply)
            .scalar_subquery()
        )

        def _repair(model: type[Post] | type[Reply], column: str, computed) -> int:
            counter = getattr(model, column)
            result = self.db.execute(
                update(model)
                .where(counter != computed)
                .values({column: computed})
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

        with store_guard("engagement.reconcile"):
            self.db.flush()
            report = ReconciliationReport(
                post_likes=_repair(Post, "likes_count", post_likes),
                post_replies=_repair(Post, "replies_count", post_replies),
                reply_likes=_repair(Reply, "likes_count", reply_likes),
                reply_replies=_repair(Reply, "replies_count", reply_replies),
            )
            self.db.expire_all()

        if report.total:
            logger.warning("Reconciliation found %d drifted counters: %s", report.total, report)
        else:
            logger.info("Reconciliation found all counters consistent")
        return report
