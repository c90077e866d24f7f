# tests/services/test_engagement.py
"""Tests for reply and like counters."""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import select, update

from marron_forum.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from marron_forum.models import Like, Post, Reply, User
from marron_forum.services.engagement import EngagementService, LikeState


@pytest.fixture()
def engagement(db_session) -> EngagementService:
    return EngagementService(db_session)


def _counts(db_session, model, row_id) -> tuple[int, int]:
    row = db_session.execute(
        select(model.likes_count, model.replies_count).where(model.id == row_id)
    ).one()
    return row.likes_count, row.replies_count


class TestReplies:
    def test_create_delete_delete_again(self, engagement, db_session, test_post, test_user) -> None:
        reply = engagement.create_reply(test_post, test_user, "First reply here")
        assert _counts(db_session, Post, test_post.id) == (0, 1)

        assert engagement.soft_delete_reply(reply) is True
        assert _counts(db_session, Post, test_post.id) == (0, 0)

        assert engagement.soft_delete_reply(reply) is False
        assert _counts(db_session, Post, test_post.id) == (0, 0)

    def test_nested_reply_counts_on_parent_and_post(
        self, engagement, db_session, test_post, test_user, other_user
    ) -> None:
        parent = engagement.create_reply(test_post, test_user, "Parent reply")
        child = engagement.create_reply(test_post, other_user, "Child reply", parent_reply=parent)

        assert _counts(db_session, Post, test_post.id) == (0, 2)
        assert _counts(db_session, Reply, parent.id) == (0, 1)
        assert child.parent_reply_id == parent.id

        engagement.soft_delete_reply(child)
        assert _counts(db_session, Post, test_post.id) == (0, 1)
        assert _counts(db_session, Reply, parent.id) == (0, 0)

    def test_restore_is_inverse_of_delete(self, engagement, db_session, test_post, test_user) -> None:
        reply = engagement.create_reply(test_post, test_user, "Restorable")
        engagement.soft_delete_reply(reply)

        assert engagement.restore_reply(reply) is True
        assert engagement.restore_reply(reply) is False
        assert _counts(db_session, Post, test_post.id) == (0, 1)

    def test_session_objects_see_new_counts(self, engagement, test_post, test_user) -> None:
        engagement.create_reply(test_post, test_user, "Visible count")

        assert test_post.replies_count == 1

    def test_only_author_may_delete(self, engagement, test_post, test_user, other_user) -> None:
        reply = engagement.create_reply(test_post, test_user, "Mine only")

        with pytest.raises(ForbiddenError):
            engagement.soft_delete_reply(reply, actor=other_user)
        assert engagement.soft_delete_reply(reply, actor=test_user) is True

    def test_reply_to_deleted_post(self, engagement, db_session, test_post, test_user) -> None:
        test_post.is_deleted = True
        db_session.flush()

        with pytest.raises(NotFoundError):
            engagement.create_reply(test_post, test_user, "Too late")

    def test_parent_must_belong_to_same_post(
        self, engagement, db_session, test_post, test_user
    ) -> None:
        other_post = Post(user_id=test_user.id, content="Another post body", category="humor")
        db_session.add(other_post)
        db_session.flush()
        foreign_parent = engagement.create_reply(other_post, test_user, "Elsewhere")

        with pytest.raises(ValidationFailedError):
            engagement.create_reply(test_post, test_user, "Crossed", parent_reply=foreign_parent)


class TestLikes:
    def test_toggle_is_its_own_inverse(self, engagement, db_session, test_post, other_user) -> None:
        liked = engagement.toggle_like(other_user, post=test_post)
        assert liked.state is LikeState.LIKED
        assert liked.liked
        assert liked.likes_count == 1
        assert engagement.has_liked(other_user, post=test_post)

        unliked = engagement.toggle_like(other_user, post=test_post)
        assert unliked.state is LikeState.UNLIKED
        assert unliked.likes_count == 0
        assert not engagement.has_liked(other_user, post=test_post)

    def test_toggle_across_commits(self, engagement, db_session, test_post, other_user) -> None:
        states = []
        for _ in range(3):
            states.append(engagement.toggle_like(other_user, post=test_post).state)
            db_session.commit()

        assert states == [LikeState.LIKED, LikeState.UNLIKED, LikeState.LIKED]
        assert _counts(db_session, Post, test_post.id) == (1, 0)

    def test_like_reply(self, engagement, db_session, test_post, test_user, other_user) -> None:
        reply = engagement.create_reply(test_post, test_user, "Like me")

        result = engagement.toggle_like(other_user, reply=reply)

        assert result.likes_count == 1
        assert _counts(db_session, Reply, reply.id) == (1, 0)
        assert _counts(db_session, Post, test_post.id) == (0, 1)

    def test_likes_from_several_users(self, engagement, test_post, test_user, other_user) -> None:
        engagement.toggle_like(test_user, post=test_post)
        result = engagement.toggle_like(other_user, post=test_post)

        assert result.likes_count == 2

    def test_decrement_never_goes_negative(self, engagement, db_session, test_post, other_user) -> None:
        db_session.add(Like(user_id=other_user.id, post_id=test_post.id))
        db_session.flush()

        result = engagement.toggle_like(other_user, post=test_post)

        assert result.state is LikeState.UNLIKED
        assert result.likes_count == 0

    def test_exactly_one_target(self, engagement, test_post, test_user) -> None:
        with pytest.raises(ValidationFailedError):
            engagement.toggle_like(test_user)
        with pytest.raises(ValidationFailedError):
            engagement.toggle_like(test_user, post=test_post, reply=object())

    def test_cannot_like_deleted_post(self, engagement, db_session, test_post, test_user) -> None:
        test_post.is_deleted = True
        db_session.flush()

        with pytest.raises(NotFoundError):
            engagement.toggle_like(test_user, post=test_post)


class TestReconcile:
    def test_repairs_drift_and_is_idempotent(
        self, engagement, db_session, test_post, test_user, other_user, make_reply
    ) -> None:
        parent = engagement.create_reply(test_post, test_user, "Counted parent")
        engagement.create_reply(test_post, other_user, "Counted child", parent_reply=parent)
        engagement.toggle_like(other_user, post=test_post)
        make_reply(test_post, other_user, "Inserted behind the counters")

        db_session.execute(
            update(Post).where(Post.id == test_post.id).values(likes_count=7, replies_count=0)
        )
        db_session.execute(update(Reply).where(Reply.id == parent.id).values(replies_count=5))

        report = engagement.reconcile_counters()

        assert report.post_likes == 1
        assert report.post_replies == 1
        assert report.reply_replies == 1
        assert _counts(db_session, Post, test_post.id) == (1, 3)
        assert _counts(db_session, Reply, parent.id) == (0, 1)

        assert engagement.reconcile_counters().total == 0

    def test_deleted_replies_are_not_counted(
        self, engagement, db_session, test_post, test_user, make_reply
    ) -> None:
        make_reply(test_post, test_user, "Gone", is_deleted=True)
        make_reply(test_post, test_user, "Here")

        engagement.reconcile_counters()

        assert _counts(db_session, Post, test_post.id) == (0, 1)


def test_concurrent_likes_are_all_counted(file_database) -> None:
    with file_database.session() as db:
        users = [
            User(email=f"liker{i}@example.com", username=f"Marrón {i}", user_number=i)
            for i in range(1, 7)
        ]
        db.add_all(users)
        db.flush()
        post = Post(user_id=users[0].id, content="Concurrent likes target", category="random")
        db.add(post)
        db.commit()
        post_id = post.id
        user_ids = [user.id for user in users]

    errors: list[BaseException] = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(user_ids))

    def worker(user_id: int) -> None:
        try:
            with file_database.session() as db:
                actor = db.get(User, user_id)
                target = db.get(Post, post_id)
                barrier.wait()
                EngagementService(db).toggle_like(actor, post=target)
                db.commit()
        except BaseException as exc:  # pragma: no cover - surfaced by the assertion below
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=worker, args=(uid,)) for uid in user_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    with file_database.session() as db:
        assert db.get(Post, post_id).likes_count == len(user_ids)
        assert EngagementService(db).reconcile_counters().total == 0
