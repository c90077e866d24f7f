# tests/services/test_posts_service.py
"""Tests for post listing, lookup, deletion and stats."""

from __future__ import annotations

import uuid

import pytest

from marron_forum.core.errors import NotFoundError
from marron_forum.services.engagement import EngagementService
from marron_forum.services.posts import PostService


@pytest.fixture()
def posts(db_session) -> PostService:
    return PostService(db_session)


def test_create_and_get_post(posts, test_user) -> None:
    post = posts.create_post(test_user, "Hello from the third floor", "queja")

    fetched = posts.get_post(post.uuid)

    assert fetched is post
    assert fetched.author is test_user
    assert (fetched.likes_count, fetched.replies_count) == (0, 0)


def test_get_unknown_post(posts) -> None:
    with pytest.raises(NotFoundError):
        posts.get_post(uuid.uuid4())


def test_list_posts_paginates_newest_first(posts, test_user) -> None:
    created = [posts.create_post(test_user, f"Post number {i:02d}", "random") for i in range(5)]

    first_page, total = posts.list_posts(page=1, limit=2)
    last_page, _ = posts.list_posts(page=3, limit=2)

    assert total == 5
    assert [p.id for p in first_page] == [created[4].id, created[3].id]
    assert [p.id for p in last_page] == [created[0].id]


def test_list_posts_filters_category_and_deleted(posts, test_user) -> None:
    posts.create_post(test_user, "Some juicy gossip", "chisme")
    joke = posts.create_post(test_user, "A very funny joke", "humor")
    gone = posts.create_post(test_user, "Another funny joke", "humor")
    posts.soft_delete_post(gone.uuid, test_user)

    items, total = posts.list_posts(category="humor")

    assert total == 1
    assert [p.id for p in items] == [joke.id]


def test_soft_delete_requires_ownership(posts, test_user, other_user) -> None:
    post = posts.create_post(test_user, "Only I can remove this", "consejo")

    with pytest.raises(NotFoundError):
        posts.soft_delete_post(post.uuid, other_user)

    posts.soft_delete_post(post.uuid, test_user)
    with pytest.raises(NotFoundError):
        posts.get_post(post.uuid)
    with pytest.raises(NotFoundError):
        posts.soft_delete_post(post.uuid, test_user)


def test_get_reply_hides_deleted_unless_asked(db_session, posts, test_post, test_user) -> None:
    engagement = EngagementService(db_session)
    reply = engagement.create_reply(test_post, test_user, "Soon deleted")
    engagement.soft_delete_reply(reply)

    with pytest.raises(NotFoundError):
        posts.get_reply(reply.uuid)
    assert posts.get_reply(reply.uuid, include_deleted=True).id == reply.id
    assert posts.list_replies(test_post) == []


def test_liked_post_ids(db_session, posts, test_user, other_user) -> None:
    first = posts.create_post(test_user, "First likable post", "humor")
    second = posts.create_post(test_user, "Second likable post", "humor")
    EngagementService(db_session).toggle_like(other_user, post=second)

    assert posts.liked_post_ids(other_user, [first.id, second.id]) == {second.id}
    assert posts.liked_post_ids(other_user, []) == set()


def test_stats(db_session, posts, test_user, other_user) -> None:
    post = posts.create_post(test_user, "Stats are counted", "random")
    EngagementService(db_session).create_reply(post, other_user, "Counted reply")

    stats = posts.stats()

    assert stats.total_posts == 1
    assert stats.total_users == 2
    assert stats.total_replies == 1
