"""Database configuration and session management."""

import os

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

DATABASE_URL = os.environ.get("INVESTPRO_DATABASE_URL", "sqlite+aiosqlite:///./investpro.db")
DEFAULT_TIMEOUT_SECONDS = 15

Base = declarative_base()


def build_engine(url: str = DATABASE_URL, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
    """Create an async engine with a driver-level timeout on every connection."""
    connect_args = {}
    if url.startswith("sqlite"):
        # sqlite3 busy timeout: how long a writer waits for the database lock
        connect_args["timeout"] = timeout_seconds
    elif "asyncpg" in url:
        connect_args["command_timeout"] = timeout_seconds
    return create_async_engine(url, echo=False, connect_args=connect_args)


engine = build_engine()
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def configure_database(url: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
    """Rebind the application engine and session factory to a new URL."""
    global engine
    engine = build_engine(url, timeout_seconds)
    async_session_maker.configure(bind=engine)


async def get_session() -> AsyncSession:
    """Dependency for getting database sessions."""
    async with async_session_maker() as session:
        yield session


async def init_db():
    """Initialize the database, creating all tables and seeding defaults."""
    from .seed import seed_defaults

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        await seed_defaults(session)
        await session.commit()
