"""Database session configuration.

The engine is owned by a ``Database`` handle that the application builds on
startup and disposes on shutdown; nothing connects at import time.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from marron_forum.core.settings import Settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import marron_forum.models  # noqa: E402,F401


def _engine_options(url: str, settings: Settings) -> dict[str, Any]:
    timeout = settings.db_timeout_seconds
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False, "timeout": timeout},
        }
    options: dict[str, Any] = {
        "pool_size": settings.db_pool_size,
        "pool_timeout": timeout,
        "pool_recycle": 1800,
    }
    if url.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return options


class Database:
    """Engine plus session factory with an explicit lifetime."""

    def __init__(self, url: str, settings: Settings) -> None:
        self.url = url
        self.engine: Engine = create_engine(
            url,
            pool_pre_ping=True,
            echo=settings.sql_debug,
            **_engine_options(url, settings),
        )
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Build a handle for the configured (or testing) database."""
        return cls(settings.effective_database_url, settings)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that is always closed; uncommitted work is rolled back."""
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        """Release every pooled connection."""
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    database: Database = request.app.state.database
    with database.session() as db:
        yield db
