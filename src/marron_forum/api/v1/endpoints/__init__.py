# src/marron_forum/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .posts import replies_router
from .posts import router as posts_router

__all__ = [
    "auth_router",
    "posts_router",
    "replies_router",
]
