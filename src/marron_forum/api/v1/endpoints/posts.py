# src/marron_forum/api/v1/endpoints/posts.py
"""Post, reply and like endpoints for the Marrón Forum API."""

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Query, status

from marron_forum.api.v1.dependencies import (
    CurrentUserDep,
    EngagementDep,
    OptionalUserDep,
    PostServiceDep,
    SessionDep,
)
from marron_forum.core.errors import ForbiddenError
from marron_forum.models import Post, Reply
from marron_forum.schemas.post import (
    AuthorOut,
    Category,
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

router = APIRouter(prefix="/posts", tags=["posts"])
replies_router = APIRouter(prefix="/replies", tags=["replies"])


def _post_out(post: Post, *, liked: bool = False) -> PostOut:
    return PostOut(
        id=post.uuid,
        content=post.content,
        category=post.category,
        likes_count=post.likes_count,
        replies_count=post.replies_count,
        created_at=post.created_at,
        author=AuthorOut.model_validate(post.author),
        user_liked=liked,
    )


def _reply_out(reply: Reply) -> ReplyOut:
    return ReplyOut(
        id=reply.uuid,
        content=reply.content,
        parent_reply_id=reply.parent_reply.uuid if reply.parent_reply is not None else None,
        likes_count=reply.likes_count,
        replies_count=reply.replies_count,
        created_at=reply.created_at,
        author=AuthorOut.model_validate(reply.author),
    )


@router.get("/", response_model=PostListResponse)
async def list_posts(
    posts: PostServiceDep,
    current_user: OptionalUserDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
    category: Category | None = None,
) -> PostListResponse:
    """List non-deleted posts, newest first, with optional category filter."""
    items, total = posts.list_posts(page=page, limit=limit, category=category)
    liked: set[int] = set()
    if current_user is not None:
        liked = posts.liked_post_ids(current_user, [post.id for post in items])
    total_pages = math.ceil(total / limit)
    return PostListResponse(
        posts=[_post_out(post, liked=post.id in liked) for post in items],
        pagination=PaginationOut(
            current_page=page,
            total_pages=total_pages,
            total_posts=total,
            has_more=page < total_pages,
        ),
    )


@router.get("/stats/summary", response_model=StatsResponse)
async def forum_stats(posts: PostServiceDep) -> StatsResponse:
    """Return forum-wide totals."""
    stats = posts.stats()
    return StatsResponse(
        total_posts=stats.total_posts,
        total_users=stats.total_users,
        total_replies=stats.total_replies,
    )


@router.get("/{post_uuid}", response_model=PostDetailResponse)
async def get_post(
    post_uuid: uuid.UUID,
    posts: PostServiceDep,
    engagement: EngagementDep,
    current_user: OptionalUserDep,
) -> PostDetailResponse:
    """Return a post with its non-deleted replies in chronological order."""
    post = posts.get_post(post_uuid)
    liked = current_user is not None and engagement.has_liked(current_user, post=post)
    return PostDetailResponse(
        post=_post_out(post, liked=liked),
        replies=[_reply_out(reply) for reply in posts.list_replies(post)],
    )


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=PostDetailResponse)
async def create_post(
    payload: PostCreate,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    db: SessionDep,
) -> PostDetailResponse:
    """Publish a new anonymous post."""
    post = posts.create_post(current_user, payload.content, payload.category)
    db.commit()
    return PostDetailResponse(post=_post_out(post), replies=[])


@router.delete("/{post_uuid}")
async def delete_post(
    post_uuid: uuid.UUID,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    db: SessionDep,
) -> dict[str, object]:
    """Soft-delete one of the caller's own posts."""
    posts.soft_delete_post(post_uuid, current_user)
    db.commit()
    return {"success": True, "message": "Post deleted"}


@router.post("/{post_uuid}/like", response_model=LikeResponse)
async def toggle_post_like(
    post_uuid: uuid.UUID,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    engagement: EngagementDep,
    db: SessionDep,
) -> LikeResponse:
    """Like the post, or remove the caller's like if present."""
    post = posts.get_post(post_uuid)
    result = engagement.toggle_like(current_user, post=post)
    db.commit()
    return LikeResponse(liked=result.liked, likes_count=result.likes_count)


@router.post(
    "/{post_uuid}/replies",
    status_code=status.HTTP_201_CREATED,
    response_model=ReplyOut,
)
async def create_reply(
    post_uuid: uuid.UUID,
    payload: ReplyCreate,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    engagement: EngagementDep,
    db: SessionDep,
) -> ReplyOut:
    """Reply to a post, optionally under another reply of the same post."""
    post = posts.get_post(post_uuid)
    parent = None
    if payload.parent_reply_id is not None:
        parent = posts.get_reply(payload.parent_reply_id)
    reply = engagement.create_reply(post, current_user, payload.content, parent_reply=parent)
    db.commit()
    return _reply_out(reply)


@replies_router.delete("/{reply_uuid}")
async def delete_reply(
    reply_uuid: uuid.UUID,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    engagement: EngagementDep,
    db: SessionDep,
) -> dict[str, object]:
    """Soft-delete one of the caller's replies; repeating it is harmless."""
    reply = posts.get_reply(reply_uuid, include_deleted=True)
    changed = engagement.soft_delete_reply(reply, actor=current_user)
    db.commit()
    return {"success": True, "deleted": changed}


@replies_router.post("/{reply_uuid}/restore")
async def restore_reply(
    reply_uuid: uuid.UUID,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    engagement: EngagementDep,
    db: SessionDep,
) -> dict[str, object]:
    """Undo the soft delete of one of the caller's replies."""
    reply = posts.get_reply(reply_uuid, include_deleted=True)
    if reply.user_id != current_user.id:
        raise ForbiddenError("Only the author can restore this reply")
    changed = engagement.restore_reply(reply)
    db.commit()
    return {"success": True, "restored": changed}


@replies_router.post("/{reply_uuid}/like", response_model=LikeResponse)
async def toggle_reply_like(
    reply_uuid: uuid.UUID,
    current_user: CurrentUserDep,
    posts: PostServiceDep,
    engagement: EngagementDep,
    db: SessionDep,
) -> LikeResponse:
    """Like the reply, or remove the caller's like if present."""
    reply = posts.get_reply(reply_uuid)
    result = engagement.toggle_like(current_user, reply=reply)
    db.commit()
    return LikeResponse(liked=result.liked, likes_count=result.likes_count)
