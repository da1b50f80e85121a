"""Database configuration and session management."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./burns.db"

Base = declarative_base()


def create_engine_for_url(database_url: str = DEFAULT_DATABASE_URL) -> AsyncEngine:
    """Create the async engine for a database URL.

    In-memory SQLite databases share a single connection so every session
    sees the same tables.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, echo=False)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session(request: Request) -> AsyncSession:
    """Dependency for getting database sessions."""
    async with request.app.state.context.session_maker() as session:
        yield session


async def init_db(engine: AsyncEngine):
    """Initialize the database, creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
