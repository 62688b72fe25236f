"""
Database Configuration for the Studio Membership backend

Async SQLAlchemy engine and session management with an explicit store
lifecycle: init_db() opens the store, ensures the schema and seeds the plan
catalog; close_db() disposes of the pool. Nothing happens on import.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from app.config.settings import Settings, settings

# Register tables with SQLModel.metadata
from app.infrastructure.db import models  # noqa: F401


logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on FK enforcement (and therefore ON DELETE CASCADE) for SQLite."""

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(config: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured store.

    SQLite gets a file-backed engine with foreign keys enabled;
    PostgreSQL gets a sized connection pool.
    """
    if config.is_sqlite:
        database = make_url(config.database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_async_engine(
            config.database_url,
            echo=config.database_echo,
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_foreign_keys(engine)
        return engine

    return create_async_engine(
        config.database_url,
        echo=config.database_echo,
        pool_size=config.database_pool_size,
        max_overflow=config.database_max_overflow,
        pool_timeout=config.database_pool_timeout,
        pool_pre_ping=True,  # Verify connections before use
    )


class DatabaseManager:
    """Owns the engine and the session factory of one store."""

    def __init__(self, config: Settings):
        self.engine = build_engine(config)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_tables(self) -> None:
        """Create missing tables from SQLModel metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Process-wide manager, built from settings on first use."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager(settings)
    return _db_manager


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Transactional session scope: committed on exit, rolled back if the
    body raises.

    Usage:
        async with get_session_context() as session:
            ledger = SubscriptionLedger(session)
            ...
    """
    async with get_db_manager().session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session, and one transaction, per request.

    Usage in FastAPI:
        @router.get("/plans")
        async def list_plans(session: SessionDep):
            ...
    """
    async with get_session_context() as session:
        yield session


async def init_db() -> None:
    """
    Bring the store to the ready state (called on app startup).

    Verifies the connection, creates missing tables when AUTO_CREATE_TABLES
    is set and seeds the plan catalog when SEED_PLAN_CATALOG is set.
    """
    from app.infrastructure.db.repositories.plan_repository import PlanRepository

    db = get_db_manager()
    await db.ping()

    if settings.auto_create_tables:
        await db.create_tables()
        logger.info("Database schema ensured")

    if settings.seed_plan_catalog:
        async with get_session_context() as session:
            created = await PlanRepository(session).ensure_catalog()
        if created:
            logger.info(f"Seeded plan catalog: {', '.join(created)}")


async def close_db() -> None:
    """Dispose of the connection pool (called on app shutdown)."""
    global _db_manager
    if _db_manager is not None:
        await _db_manager.close()
        _db_manager = None
