# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time; provide the required values first.
os.environ.setdefault("MURMUR_SERVICE_URL", "http://test")
os.environ.setdefault("MURMUR_ANON_KEY", "test-anon-key")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from murmur.client.errors import RequestRejected  # noqa: E402
from murmur.core.security import create_access_token, hash_password  # noqa: E402
from murmur.core.settings import settings  # noqa: E402
from murmur.db.session import Base  # noqa: E402
from murmur.db.session import get_db as app_get_session  # noqa: E402
from murmur.main import app as fastapi_app  # noqa: E402
from murmur.models import AuthIdentity, Post, Profile  # noqa: E402
from murmur.schemas.auth import CurrentUser  # noqa: E402
from murmur.schemas.common import FeedFilter  # noqa: E402
from murmur.schemas.post import AuthorOut, PostsPage, PostView  # noqa: E402

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "secret123"

_USER_COUNTER = count(1)
_BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # Services commit, so wipe every table between tests.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
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


@pytest.fixture()
def api_key_header() -> dict[str, str]:
    return {"apikey": settings.anon_key}


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., CurrentUser]:
    """Return a factory that persists an identity with its profile."""

    def _make(username: str | None = None, password: str = TEST_PASSWORD) -> CurrentUser:
        username = username or f"user{next(_USER_COUNTER)}"
        identity = AuthIdentity(
            email=f"{username.lower()}@example.com",
            password_hash=hash_password(password),
            user_metadata={"username": username},
        )
        db_session.add(identity)
        db_session.flush()
        db_session.add(Profile(id=identity.id, username=username))
        db_session.commit()
        return CurrentUser(id=identity.id, username=username, email=identity.email)

    return _make


@pytest.fixture()
def test_user(make_user: Callable[..., CurrentUser]) -> CurrentUser:
    return make_user("alice")


@pytest.fixture()
def other_user(make_user: Callable[..., CurrentUser]) -> CurrentUser:
    return make_user("bob")


def bearer_headers(user: CurrentUser) -> dict[str, str]:
    return {
        "apikey": settings.anon_key,
        "Authorization": f"Bearer {create_access_token(user.id)}",
    }


@pytest.fixture()
def auth_headers(test_user: CurrentUser) -> dict[str, str]:
    return bearer_headers(test_user)


@pytest.fixture()
def other_auth_headers(other_user: CurrentUser) -> dict[str, str]:
    return bearer_headers(other_user)


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    """Return a factory for posts with controllable timestamps.

    ``minutes`` offsets ``created_at`` from a fixed base time so tests can
    build feeds with known ordering, including exact ties.
    """

    def _make(author: CurrentUser, content: str = "hello world", minutes: int = 0) -> Post:
        created = _BASE_TIME + timedelta(minutes=minutes)
        post = Post(content=content, author_id=author.id, created_at=created, updated_at=created)
        db_session.add(post)
        db_session.commit()
        return post

    return _make


class FakeBackend:
    """In-memory stand-in for the HTTP service, used by client tests.

    Mirrors the server's feed semantics. ``gates`` holds an operation until
    its event is set; ``failures`` makes the next call of an operation raise
    before anything changes.
    """

    def __init__(self, viewer: CurrentUser) -> None:
        self.viewer = viewer
        self.posts: dict[int, dict[str, object]] = {}
        self.likes: set[tuple[int, str]] = set()
        self.calls: list[tuple[str, object]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}
        self._ids = count(1)

    def add_post(
        self,
        content: str,
        *,
        author: CurrentUser | None = None,
        minutes: int = 0,
        likes: int = 0,
        liked: bool = False,
    ) -> PostView:
        author = author or self.viewer
        post_id = next(self._ids)
        created = _BASE_TIME + timedelta(minutes=minutes)
        self.posts[post_id] = {
            "content": content,
            "author": author,
            "created_at": created,
            "updated_at": created,
        }
        for i in range(likes):
            self.likes.add((post_id, f"fan-{i}"))
        if liked:
            self.likes.add((post_id, self.viewer.id))
        return self.view(post_id)

    def view(self, post_id: int) -> PostView:
        row = self.posts[post_id]
        author = row["author"]
        return PostView(
            id=post_id,
            content=row["content"],
            author_id=author.id,
            author=AuthorOut(id=author.id, username=author.username),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            like_count=sum(1 for pid, _ in self.likes if pid == post_id),
            is_liked=(post_id, self.viewer.id) in self.likes,
        )

    async def _enter(self, operation: str, argument: object = None) -> None:
        self.calls.append((operation, argument))
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        failure = self.failures.pop(operation, None)
        if failure is not None:
            raise failure

    async def fetch_page(self, key, cursor=None, limit=None) -> PostsPage:
        await self._enter("fetch_page", (key, cursor))
        limit = limit or 5
        views = [self.view(post_id) for post_id in self.posts]
        views = [
            view for view in views
            if (key.filter is not FeedFilter.MINE or view.author_id == self.viewer.id)
            and (key.filter is not FeedFilter.LIKED or view.is_liked)
            and (
                not key.search
                or key.search in view.content.casefold()
                or key.search in view.author.username.casefold()
            )
        ]
        views.sort(key=lambda view: (view.created_at, view.id), reverse=True)
        if cursor is not None:
            stamp, post_id = cursor.split("|")
            after = (datetime.fromisoformat(stamp), int(post_id))
            views = [view for view in views if (view.created_at, view.id) < after]
        page, rest = views[:limit], views[limit:]
        next_cursor = f"{page[-1].created_at.isoformat()}|{page[-1].id}" if rest else None
        return PostsPage(posts=page, has_next_page=bool(rest), next_cursor=next_cursor)

    async def create_post(self, content: str) -> PostView:
        await self._enter("create_post", content)
        return self.add_post(content, minutes=10_000 + len(self.posts))

    async def update_post(self, post_id: int, content: str) -> PostView:
        await self._enter("update_post", post_id)
        row = self.posts[post_id]
        row["content"] = content
        row["updated_at"] = datetime.now(UTC)
        return self.view(post_id)

    async def delete_post(self, post_id: int) -> None:
        await self._enter("delete_post", post_id)
        del self.posts[post_id]
        self.likes = {(pid, uid) for pid, uid in self.likes if pid != post_id}

    async def like(self, post_id: int) -> None:
        await self._enter("like", post_id)
        if (post_id, self.viewer.id) in self.likes:
            raise RequestRejected(409, "Post already liked")
        self.likes.add((post_id, self.viewer.id))

    async def unlike(self, post_id: int) -> None:
        await self._enter("unlike", post_id)
        if (post_id, self.viewer.id) not in self.likes:
            raise RequestRejected(404, "Post is not liked")
        self.likes.discard((post_id, self.viewer.id))


@pytest.fixture()
def viewer() -> CurrentUser:
    return CurrentUser(id="u1", username="alice", email="alice@example.com")


@pytest.fixture()
def backend(viewer: CurrentUser) -> FakeBackend:
    return FakeBackend(viewer)
