import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from jelantah.config import settings


logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Point PostgreSQL URLs at the async psycopg (v3) driver."""
    for prefix in ("postgresql+asyncpg://", "postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # aiosqlite hands each connection to a worker thread
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "connect_args": {"connect_timeout": 30},
    }


database_url = async_database_url(settings.DATABASE_URL)

engine = create_async_engine(database_url, echo=settings.DEBUG, **_engine_options(database_url))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by every JelantahGO table."""


@asynccontextmanager
async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Session for code running outside a request (scheduler jobs, scripts)."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Services commit their own unit of work; the trailing commit only flushes
    reads that created rows (e.g. the default settings row). Any exception
    rolls the session back before the error handler renders the response.
    """
    async with get_db_session() as session:
        yield session


async def init_db() -> None:
    """Create missing tables. Alembic migrations remain the source of truth in production."""
    from jelantah import models  # noqa: F401  registers the tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready ({len(Base.metadata.tables)} tables)")
