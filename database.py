"""
Database engine and per-request sessions.

Users and the trial ledger live in the same database. SQLite (aiosqlite) is
for local development and tests only; production must point DATABASE_URL at
PostgreSQL, which is driven through asyncpg.
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from config import settings, IS_PRODUCTION

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./sql_app.db"


def resolve_database_url(url, production=False):
    """
    Turn a DATABASE_URL into one the async engine can drive.

    Hosts hand out plain postgres:// or postgresql:// URLs; both get the
    asyncpg driver. Raises RuntimeError for a missing or SQLite URL in
    production.
    """
    if production and not url:
        raise RuntimeError("DATABASE_URL must be set in production. SQLite is not allowed in production.")
    url = url or DEFAULT_DATABASE_URL
    if production and url.lower().startswith("sqlite"):
        raise RuntimeError("SQLite is forbidden in production. Use a PostgreSQL DATABASE_URL.")

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


DATABASE_URL = resolve_database_url(settings.database_url, IS_PRODUCTION)

# Postgres connections can be dropped by the host between requests
engine = create_async_engine(
    DATABASE_URL,
    pool_pre_ping=DATABASE_URL.startswith("postgresql"),
)

Base = declarative_base()

# Rows stay readable after commit; handlers return them after the ledger write
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db():
    """Create the users and trials tables if they don't exist."""
    from database_models import User, TrialRecord  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one AsyncSession per request.

    Commits when the handler returns normally and rolls back if it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
