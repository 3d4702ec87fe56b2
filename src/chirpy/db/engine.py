"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

Postgres (asyncpg) is the production target. A sqlite+aiosqlite URL also
works for local runs; SQLite doesn't take pool sizing, so those options are
only passed for server databases.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chirpy.config import settings


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.debug}
    if make_url(database_url).get_backend_name() != "sqlite":
        # Connection pool: min 5, max 20 connections.
        options.update(pool_size=5, max_overflow=15, pool_pre_ping=True)
    return options


engine = create_async_engine(
    settings.database_url, **_engine_options(settings.database_url)
)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables() -> None:
    """Create missing tables. No migrations; schema changes are handled out of band."""
    from chirpy.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
