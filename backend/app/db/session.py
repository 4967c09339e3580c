############################################################
#
# bloghut - Community Blogging Platform
#
# session.py: Async engine, session factory and FastAPI dependency
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database engine and session management."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from backend.app.logging_config import get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def enable_sqlite_foreign_keys(sync_engine: Engine) -> None:
    """Turn on FK enforcement for every new SQLite connection.

    SQLite ships with foreign keys disabled, and the ON DELETE CASCADE
    rules on posts, comments and reactions depend on them.
    """

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine configured for the given database URL."""
    settings = get_settings()
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if not _is_sqlite(url):
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
    new_engine = create_async_engine(url, **kwargs)
    if _is_sqlite(url):
        enable_sqlite_foreign_keys(new_engine.sync_engine)
    return new_engine


_settings = get_settings()
engine = build_engine(_settings.database_url, echo=_settings.database_echo)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_async_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Session context manager for code running outside a request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(target: AsyncEngine = None) -> None:
    """Create any missing tables and seed the badge catalog.

    Production deployments run ``alembic upgrade head`` instead; this is
    used for local development and by the test-suite.
    """
    from backend.app.db.base import Base
    from backend.app.db import models  # noqa: F401  (register tables)
    from backend.app.db.crud import seed_badges

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=target, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        created = await seed_badges(session)
        await session.commit()
    logger.info("database_initialized", badges_seeded=created)
