import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from services.errors import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Base(DeclarativeBase):
    pass


def create_engine_from_settings(settings) -> AsyncEngine:
    """Create the async engine for the configured database URL"""
    url = settings.get_database_url()

    if url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        return create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db(request: Request):
    """Dependency to get a request-scoped database session"""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(engine: AsyncEngine):
    """Verify the connection and create missing tables"""
    # Model modules register their tables on Base.metadata
    from database import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
            logger.info(f"Database ready, tables: {sorted(Base.metadata.tables)}")
        return True
    except Exception as e:
        logger.error(f"Database initialization error: {e}")
        raise


async def run_with_timeout(operation: Awaitable[T], timeout: float, name: str) -> T:
    """
    Await a storage operation under a deadline.

    Timeouts and connectivity failures become TransientStorageError so the
    HTTP layer can answer 503 instead of 404 or 500.
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Storage operation timed out after {timeout}s: {name}")
        raise TransientStorageError(name, f"timed out after {timeout}s") from e
    except (OperationalError, InterfaceError) as e:
        logger.error(f"Storage connectivity failure in {name}: {e.__class__.__name__}")
        raise TransientStorageError(name, "storage unavailable") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.error(f"Storage connection invalidated in {name}")
            raise TransientStorageError(name, "connection invalidated") from e
        raise
