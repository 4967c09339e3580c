############################################################
#
# bloghut - Community Blogging Platform
#
# conftest.py: Pytest configuration and shared test fixtures
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Pytest configuration and shared fixtures for Blog Hut tests."""

import re
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app.db import crud
from backend.app.db.models import PostStatus, UserRole
from backend.app.db.session import enable_sqlite_foreign_keys, get_async_db, init_db
from backend.app.security.password_hash import hash_password
from backend.app.storage.uploads import ImageStorage, set_image_storage

TEST_PASSWORD = "secret123"
POST_BODY = (
    "<p>Writing about the mountains of northern Idaho, where the lakes stay "
    "cold well into July and the trails are empty on weekdays.</p>"
)

_CSRF_META = re.compile(r'<meta name="csrf-token" content="([^"]*)"')


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(test_engine.sync_engine)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def image_storage(tmp_path):
    """Point uploads at a temporary directory."""
    storage = ImageStorage(str(tmp_path / "uploads"))
    set_image_storage(storage)
    yield storage
    set_image_storage(None)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, with the test database swapped in."""
    from backend.app.main import app

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_db] = _test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Factory: insert a user directly (no badge, no validation) and return it."""

    async def _make_user(username: str, role: UserRole = UserRole.USER, password: str = TEST_PASSWORD):
        async with session_factory() as session:
            user = await crud.create_user(
                session, username, f"{username}@example.com", hash_password(password), role=role
            )
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_post(session_factory):
    """Factory: insert a post for an author id and return it."""

    async def _make_post(
        user_id: int,
        title: str = "Lakes of the north",
        status: PostStatus = PostStatus.PUBLISHED,
        category_id: int = None,
    ):
        async with session_factory() as session:
            post = await crud.create_post(
                session,
                user_id=user_id,
                title=title,
                content=POST_BODY,
                category_id=category_id,
                status=status,
            )
            await session.commit()
            return post

    return _make_post


def csrf_from(html: str) -> str:
    """CSRF token embedded in a rendered page."""
    match = _CSRF_META.search(html)
    assert match, "page carries no CSRF token"
    return match.group(1)


@pytest.fixture
def fetch_csrf(client):
    """Factory: GET a page and return the CSRF token it carries."""

    async def _fetch_csrf(path: str = "/auth/login") -> str:
        response = await client.get(path)
        return csrf_from(response.text)

    return _fetch_csrf


@pytest.fixture
def login(client, fetch_csrf):
    """Factory: log the client in through the login form."""

    async def _login(username: str, password: str = TEST_PASSWORD):
        token = await fetch_csrf("/auth/login")
        return await client.post(
            "/auth/login",
            data={"identifier": username, "password": password, "csrf_token": token},
        )

    return _login


@pytest.fixture
def ajax_headers():
    """Headers the site script sends with JSON API calls."""

    def _headers(token: str = None) -> dict:
        headers = {"X-Requested-With": "XMLHttpRequest"}
        if token:
            headers["X-CSRF-Token"] = token
        return headers

    return _headers
