"""Async engine and session scopes for the notification tables."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shopnotify.core.config import DatabaseConfig


class DatabaseManager:
    """Owns the engine shared by the notification and commerce repositories.

    Reads go through ``session()``; anything that writes uses
    ``transaction()`` so the commit or rollback happens on block exit::

        db = DatabaseManager.from_config(settings.db)
        async with db.transaction() as session:
            session.add(row)
        await db.close()
    """

    def __init__(self, database_url: str, echo: bool = False, pool_size: int = 5) -> None:
        engine_kwargs: dict[str, Any] = {"echo": echo}
        # aiosqlite (tests) uses a static pool with no size or pre-ping.
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(pool_size=pool_size, pool_pre_ping=True)
        self._engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self._sessions: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> DatabaseManager:
        return cls(config.database_url, echo=config.echo, pool_size=config.pool_size)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def session(self) -> AsyncSession:
        return self._sessions()

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session whose work is committed together, or rolled back on error."""
        async with self._sessions() as session, session.begin():
            yield session

    async def create_all(self) -> None:
        """Create the notification and storefront tables. Tests and local dev only."""
        from shopnotify.db import models  # noqa: F401
        from shopnotify.db.base import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()
