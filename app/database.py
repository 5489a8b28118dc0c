"""Async engine, session factory and the per-request session dependency."""
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


logger = logging.getLogger(__name__)

_POSTGRES_PREFIXES = ("postgresql+asyncpg://", "postgresql://", "postgres://")


def async_database_url(url: str) -> str:
    """Route PostgreSQL URLs through the async psycopg driver."""
    for prefix in _POSTGRES_PREFIXES:
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def engine_options(url: str) -> dict:
    options = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        # No pool tuning for SQLite
        options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args={"connect_timeout": settings.DB_CONNECT_TIMEOUT},
    )
    return options


database_url = async_database_url(settings.DATABASE_URL)
engine = create_async_engine(database_url, **engine_options(database_url))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for every workforce planning table."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request.

    Endpoints commit explicitly after a mutation; whatever is still pending
    when the handler returns is committed here, and any exception rolls
    the whole request back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables (AUTO_CREATE_TABLES setups only; no migrations)."""
    from app import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database schema ready ({len(Base.metadata.tables)} tables)")
