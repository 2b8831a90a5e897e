from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from services.booking.app.settings import SETTINGS


def create_engine(database_url: str | None = None) -> AsyncEngine:
    # NullPool: no pooled connections shared across event loops (tests spin up several).
    return create_async_engine(
        database_url or SETTINGS.database_url,
        pool_pre_ping=True,
        poolclass=NullPool,
        echo=SETTINGS.log_level.lower() == "debug",
    )


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Reservation rows are returned after commit, so attributes must survive it.
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


ENGINE = create_engine()
SESSIONMAKER = make_sessionmaker(ENGINE)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SESSIONMAKER() as session:
        yield session
