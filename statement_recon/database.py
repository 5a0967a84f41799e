"""Async engine, session factory and the ``get_db`` dependency."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from statement_recon.config import settings


class Base(DeclarativeBase):
    """Declarative base for statement, transaction and payment tables."""


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # SQLite pools do not take sizing arguments
        return options
    options.update(pool_size=10, max_overflow=20, pool_recycle=3600)
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Overridden by the test suite to point requests at an in-memory database
_test_session_maker: async_sessionmaker[AsyncSession] | None = None


def set_test_session_maker(
    maker: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession] | None:
    """Install ``maker`` for request sessions and return the previous one."""
    global _test_session_maker
    previous = _test_session_maker
    _test_session_maker = maker
    return previous


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request. Routers commit explicitly; anything uncommitted is rolled back on close."""
    maker = _test_session_maker or async_session_maker
    async with maker() as session:
        yield session


async def init_db() -> None:
    """Startup hook. Tables are owned by external migrations, so this only logs the target."""
    from statement_recon.logger import get_logger

    get_logger(__name__).info(
        "Database engine configured",
        dialect=engine.dialect.name,
        environment=settings.environment,
    )
