# src/marron_forum/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import auth_router, posts_router, replies_router

__all__ = [
    "auth_router",
    "posts_router",
    "replies_router",
]
