"""
Test configuration and fixtures for Studio Membership.

Provides shared fixtures for unit and integration tests: an in-memory
SQLite store with foreign keys enforced, a seeded plan catalog, a user
factory and an HTTP client wired to the same store.
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.config.settings import Settings, get_settings
from app.infrastructure.db import database
from app.infrastructure.db.database import enable_sqlite_foreign_keys, get_session
from app.domain.subscription import PlanName
from app.infrastructure.db.models import User
from app.infrastructure.db.repositories.plan_repository import PlanRepository


TEST_ADMIN_KEY = "test-admin-key"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine, with the catalog seeded."""
    factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with factory() as session:
        await PlanRepository(session).ensure_catalog()
        await session.commit()

    return factory


@pytest.fixture
def file_store(tmp_path, monkeypatch):
    """
    Point the database module at a fresh SQLite file in a not-yet-existing
    directory, for tests that need real connections (one per session).
    """
    path = tmp_path / "nested" / "studio.db"
    config = Settings(_env_file=None, database_url=f"sqlite:///{path}")
    monkeypatch.setattr(database, "settings", config)
    monkeypatch.setattr(database, "_db_manager", None)
    return path


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct ledger/repository tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def plan_ids(db_session: AsyncSession) -> dict[PlanName, int]:
    """Ids of the seeded catalog plans keyed by name."""
    repository = PlanRepository(db_session)
    return {name: (await repository.get_by_name(name)).id for name in PlanName}


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Factory that commits a user and returns its id."""
    counter = {"n": 0}

    async def _make_user(role: str = "user") -> int:
        counter["n"] += 1
        n = counter["n"]
        user = User(email=f"member{n}@example.com", username=f"member{n}", role=role)
        db_session.add(user)
        await db_session.commit()
        return user.id

    return _make_user


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application."""
    from app.main import app
    return app


@pytest.fixture
def admin_key(monkeypatch) -> str:
    """Configure the admin API key for the duration of a test."""
    monkeypatch.setattr(get_settings(), "admin_api_key", TEST_ADMIN_KEY)
    return TEST_ADMIN_KEY


@pytest_asyncio.fixture
async def async_client(app, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Async test client whose request sessions use the in-memory store.

    The lifespan is not run, so the configured database is never touched.
    """

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
