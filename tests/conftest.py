# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest")
os.environ.setdefault("ENVIRONMENT", "development")

from marron_forum.core.settings import Settings, settings
from marron_forum.db.session import Base, Database
from marron_forum.db.session import get_db as app_get_session
from marron_forum.db.time import utcnow
from marron_forum.main import app as fastapi_app
from marron_forum.models import USER_NUMBER_SEQUENCE, CounterSequence, Post, Reply, User
from marron_forum.services.session_tokens import SessionIssuer

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


def _reset_tables(connection) -> None:
    for table in reversed(Base.metadata.sorted_tables):
        connection.execute(table.delete())
    connection.execute(
        insert(CounterSequence).values(name=USER_NUMBER_SEQUENCE, value=0)
    )


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT nests inside the test transaction.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    # Commits inside the test release a savepoint; the outer transaction stays open.
    session = Session(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            _reset_tables(cleanup_conn)


@pytest.fixture()
def file_database(tmp_path) -> Iterator[Database]:
    """A real file-backed database for tests that use several connections."""
    database = Database(f"sqlite:///{tmp_path / 'forum.db'}", settings)
    database.create_tables()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    fastapi_app.state.database = Database(TEST_DB_URL, settings)
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide the Settings instance the application runs with."""
    return settings


class FrozenClock:
    """Deterministic clock that tests advance by hand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with increasing display numbers."""

    def _make(email: str | None = None, **overrides) -> User:
        number = 1000 + next(_USER_COUNTER)
        user = User(
            email=email or f"user{number}@example.com",
            username=User.username_for(number),
            user_number=number,
            is_active=overrides.pop("is_active", True),
            is_banned=overrides.pop("is_banned", False),
            **overrides,
        )
        db_session.add(user)
        db_session.flush()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def test_user(make_user) -> User:
    """Create and return a persisted test user."""
    return make_user("test@example.com")


@pytest.fixture()
def other_user(make_user) -> User:
    """Create and return a second persisted user."""
    return make_user("other@example.com")


@pytest.fixture()
def session_issuer() -> SessionIssuer:
    return SessionIssuer()


@pytest.fixture()
def auth_token(test_user: User, session_issuer: SessionIssuer) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return {"Authorization": f"Bearer {session_issuer.issue(test_user)}"}


@pytest.fixture()
def other_auth_token(other_user: User, session_issuer: SessionIssuer) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return {"Authorization": f"Bearer {session_issuer.issue(other_user)}"}


@pytest.fixture()
def test_post(db_session: Session, test_user: User) -> Post:
    """Create a baseline post for tests."""
    post = Post(
        user_id=test_user.id,
        content="Test post content about the office",
        category="chisme",
        likes_count=0,
        replies_count=0,
        is_deleted=False,
    )
    db_session.add(post)
    db_session.flush()
    db_session.refresh(post)
    return post


@pytest.fixture()
def make_reply(db_session: Session) -> Callable[..., Reply]:
    """Insert a reply row directly, bypassing the counter protocol."""

    def _make(post: Post, author: User, content: str = "A raw reply", **fields) -> Reply:
        reply = Reply(
            post_id=post.id,
            user_id=author.id,
            content=content,
            likes_count=fields.pop("likes_count", 0),
            replies_count=fields.pop("replies_count", 0),
            is_deleted=fields.pop("is_deleted", False),
            **fields,
        )
        db_session.add(reply)
        db_session.flush()
        db_session.refresh(reply)
        return reply

    return _make
