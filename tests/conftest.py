import asyncio
import os
import uuid

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"
os.environ["EXPOSE_ERROR_DETAILS"] = "false"
os.environ["ALLOW_UNKNOWN_CATEGORIES"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from movietracker.auth import create_access_token, hash_password
from movietracker.database import get_db
from movietracker.main import app
from movietracker.models import Base, MovieListEntry, User


@pytest.fixture
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'movies.db'}", poolclass=NullPool)

    async def _create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create_tables())
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    def _make_user(email: str = "viewer@example.com", password: str = "correct horse") -> User:
        async def _create():
            async with session_factory() as session:
                user = User(email=email, password_hash=hash_password(password))
                session.add(user)
                await session.commit()
                return user

        return asyncio.run(_create())

    return _make_user


@pytest.fixture
def login_as(client):
    """Put a session for the given identity on the test client."""

    def _login_as(user_id: uuid.UUID | None = None, email: str | None = None) -> TestClient:
        client.cookies.set("access_token", create_access_token(user_id, email))
        client.cookies.set("csrf_token", "csrf-test-token")
        client.headers["X-CSRF-Token"] = "csrf-test-token"
        return client

    return _login_as


@pytest.fixture
def add_entry(session_factory):
    def _add_entry(user_id: uuid.UUID, movie_id: str, category: str, title: str = "Heat") -> None:
        async def _insert():
            async with session_factory() as session:
                session.add(
                    MovieListEntry(user_id=user_id, movie_id=movie_id, title=title, category=category)
                )
                await session.commit()

        asyncio.run(_insert())

    return _add_entry


@pytest.fixture
def stored_entries(session_factory):
    def _stored_entries(user_id: uuid.UUID) -> list[MovieListEntry]:
        async def _load():
            async with session_factory() as session:
                rows = await session.execute(
                    select(MovieListEntry).where(MovieListEntry.user_id == user_id)
                )
                return list(rows.scalars().all())

        return asyncio.run(_load())

    return _stored_entries
