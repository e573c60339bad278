"""
Database engine and session factories.

Engines are created explicitly by the process entry point (API lifespan,
seed script, tests) and passed down; there is no module-level engine.
"""

import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from database.models import Base
from shared.config import get_settings

logger = logging.getLogger(__name__)


def create_engine_from_settings(url: str | None = None) -> AsyncEngine:
    """
    Create the async engine with pool settings from configuration.

    pool_timeout bounds how long a transaction attempt waits for a pooled
    connection before failing (and being classified as a connection error).
    """
    settings = get_settings()
    database_url = url or settings.DATABASE_URL

    engine = create_async_engine(
        database_url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
    )
    logger.info(
        f"Database engine created (pool_size={settings.DB_POOL_SIZE}, "
        f"max_overflow={settings.DB_MAX_OVERFLOW}, pool_timeout={settings.DB_POOL_TIMEOUT}s)"
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for read paths that do not need the transaction executor."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables (and enum types) that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def drop_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("Database tables dropped")


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OperationalError, DBAPIError, OSError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def wait_for_database(engine: AsyncEngine) -> None:
    """
    Block until the database answers SELECT 1.

    Used at startup so the API and the seed script tolerate PostgreSQL
    coming up a few seconds after them (docker-compose ordering).
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection verified")
