"""Async engine, sessions and the unit-of-work helper services write through."""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ledger_integrity.config import settings


class Base(DeclarativeBase):
    pass


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug}
    if url.startswith("sqlite"):
        return options
    options.update(pool_pre_ping=True, pool_size=10, max_overflow=20, pool_recycle=3600)
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Replaced by the test suite with a maker bound to in-memory SQLite
_session_maker_override: async_sessionmaker[AsyncSession] | None = None


def set_test_session_maker(
    maker: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession] | None:
    """Install ``maker`` for ``get_db`` and return whatever was installed before."""
    global _session_maker_override
    previous, _session_maker_override = _session_maker_override, maker
    return previous


def session_maker_for(db: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """A maker on ``db``'s engine for writes that must not share its transaction."""
    if isinstance(db.bind, AsyncEngine):
        return async_sessionmaker(db.bind, class_=AsyncSession, expire_on_commit=False)
    return _session_maker_override or async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    maker = _session_maker_override or async_session_maker
    async with maker() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit the block's writes together, or roll all of them back.

    A journal and the balance changes it causes must land in one commit::

        async with atomic(db):
            db.add(journal)
            account.current_balance -= amount
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def init_db() -> None:
    """Create any missing tables for the registered models."""
    from ledger_integrity import models  # noqa: F401
    from ledger_integrity.logger import get_logger

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    get_logger(__name__).info("Database initialized", tables=len(Base.metadata.tables))
