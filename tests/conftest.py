"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator

# Rate limiting is read at import time, so disable it before importing the app
os.environ["TASKHIVE_RATE_LIMIT_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from taskhive.api.server import app
from taskhive.db import get_db, Base
from taskhive.db.database import enable_sqlite_savepoints
from taskhive.db.models import User
from taskhive.notifications import broker
from taskhive.security.password import hash_password


# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(test_engine) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_broker():
    """Drop realtime subscribers left over by a test."""
    yield
    broker.subscribers.clear()


async def _register_and_login(client: AsyncClient, username: str) -> dict:
    """Register a user and return its auth headers."""
    await client.post(
        "/api/auth/register",
        json={
            "email": f"{username}@example.com",
            "username": username,
            "password": f"{username}-password",
        },
    )

    response = await client.post(
        "/api/auth/login",
        json={
            "email_or_username": username,
            "password": f"{username}-password",
        },
    )

    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def auth_headers(client: AsyncClient) -> dict:
    """Get authentication headers for a test user."""
    return await _register_and_login(client, "authuser")


@pytest_asyncio.fixture(scope="function")
async def second_user_headers(client: AsyncClient) -> dict:
    """Get authentication headers for a second test user."""
    return await _register_and_login(client, "seconduser")


@pytest_asyncio.fixture(scope="function")
async def third_user_headers(client: AsyncClient) -> dict:
    """Get authentication headers for a third test user."""
    return await _register_and_login(client, "thirduser")


@pytest.fixture
def login_as(client: AsyncClient):
    """Register and log in extra users by name."""

    async def _login(username: str) -> dict:
        return await _register_and_login(client, username)

    return _login


@pytest.fixture
def make_user(test_session: AsyncSession):
    """Insert users directly, for tests that bypass the API."""

    async def _make(username: str) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            password_hash=hash_password("testpassword123"),
            display_name=username.title(),
        )
        test_session.add(user)
        await test_session.commit()
        return user

    return _make
