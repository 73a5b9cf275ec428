"""
Database Connection Module
Handles the SQL document store connection using SQLAlchemy async engine.
The engine is built lazily so the in-memory backend never needs a driver.
"""

import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from orderflow.core.config import get_settings

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


@lru_cache()
def get_engine() -> AsyncEngine:
    """Create the async engine from settings (once)."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


@lru_cache()
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the shared engine."""
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,  # Objects remain accessible after commit
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables in database.
    Called once at application startup when the SQL backend is active.
    """
    # Register the mapped tables on Base.metadata
    from orderflow import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
