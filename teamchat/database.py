"""
Engine and sessions.

One async engine per process. Request handlers get a session through
``get_db``; the socket access check and startup code open their own from
``AsyncSessionLocal``. Sessions keep loaded aggregates usable after commit
so services can publish them without another round trip.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from teamchat.config.settings import get_settings

settings = get_settings()


def async_database_url(url: str) -> str:
    """Plain ``postgresql://`` URLs are routed to the asyncpg driver."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


DATABASE_URL = async_database_url(settings.database_url)

# Tests open and drop the schema per case; pooled connections would outlive it
engine = create_async_engine(
    DATABASE_URL,
    echo=settings.sql_echo,
    pool_pre_ping=True,
    poolclass=NullPool if settings.environment == "test" else None,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back if the handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    await engine.dispose()
