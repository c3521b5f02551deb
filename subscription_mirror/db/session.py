"""Database session configuration."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from subscription_mirror.core.config import settings

# Mirror reads and writes hold a connection for a single statement, so a small pool
# absorbs webhook bursts. pool_timeout bounds how long a request waits for a connection.
POOL_SIZE = 10
MAX_OVERFLOW = POOL_SIZE


def create_engine_from_settings(database_uri: Optional[str] = None) -> AsyncEngine:
    """Create the async engine for the mirror database."""
    return create_async_engine(
        database_uri or str(settings.SQLALCHEMY_ASYNC_DATABASE_URI),
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=300,  # Recycle connections after 5 minutes
        pool_timeout=30,  # Wait up to 30 seconds for a connection
        isolation_level="READ COMMITTED",
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory handed to the mirror repository."""
    return async_sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


@asynccontextmanager
async def get_db_context(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session that can be used as a context manager.

    Yields:
        AsyncSession: An async database session

    Example:
    -------
        async with get_db_context(session_factory) as db:
            await db.execute(...)

    """
    async with session_factory() as db:
        try:
            yield db
        finally:
            await db.close()
