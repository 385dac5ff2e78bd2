"""Database configuration and connection management"""

from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    async_sessionmaker,
    create_async_engine,
    AsyncSession,
    AsyncEngine
)
from billing_resources.core.config import settings

# Import Base from models so every table is registered on the same metadata
from billing_resources.models.base import Base

engine: Optional[AsyncEngine] = None
async_session_factory: Optional[async_sessionmaker] = None


def get_database_url() -> str:
    """Construct the database URL, preferring an explicit DATABASE_URL"""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return (
        f"mysql+aiomysql://{settings.MYSQL_USER}:{settings.MYSQL_PASSWORD}"
        f"@{settings.MYSQL_HOST}:{settings.MYSQL_PORT}/{settings.MYSQL_DATABASE}"
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory used by the app and the test suite"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database() -> None:
    """Initialize the async engine and session factory"""
    global engine, async_session_factory

    database_url = get_database_url()

    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=settings.DEBUG)
    else:
        engine = create_async_engine(
            database_url,
            echo=settings.DEBUG,
            pool_size=10,
            max_overflow=20,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
        )

    async_session_factory = create_session_factory(engine)


async def close_database() -> None:
    """Dispose the engine and its pooled connections"""
    global engine
    if engine:
        await engine.dispose()
        engine = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection for database sessions.

    Usage in FastAPI:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """
    Check if the database connection is healthy.
    Used for health checks.
    """
    if engine is None:
        return False

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


__all__ = [
    "Base",
    "get_database_url",
    "create_session_factory",
    "init_database",
    "close_database",
    "get_db",
    "check_database_connection",
]
