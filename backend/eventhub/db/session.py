"""
Async engine and session factory.

One AsyncSession per request. Services own their transaction boundaries
(commit / rollback), the dependency only guarantees the session is closed.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from eventhub.core.config import get_settings

settings = get_settings()


def build_engine(url: str, **overrides) -> AsyncEngine:
    """Create an engine, applying pool sizing only where the dialect pools connections."""
    options = {"echo": False, "future": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
        )
    options.update(overrides)
    return create_async_engine(url, **options)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
