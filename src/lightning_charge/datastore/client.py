"""Datastore client: owns the async engine and hands out sessions."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from lightning_charge.datastore.engines import create_engine
from lightning_charge.engine.models import Base

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from lightning_charge.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_NOT_OPEN = "Datastore is not open. Call open() first."


class Datastore:
    """Async SQLAlchemy engine plus session factory for the repositories.

    Reads use ``session()``; writes that must land together (a row and its
    webhook registrations, a conditional payment update) use
    ``transaction()``, which commits on exit and rolls back on error.

    Usage::

        ds = Datastore(db_config)
        await ds.open()
        await ds.create_schema()
        async with ds.transaction() as session:
            await session.execute(stmt)
        await ds.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """Return the underlying async engine.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._engine

    async def open(self) -> None:
        """Create the engine. Call ``create_schema()`` before first use."""
        if self._engine is not None:
            return
        self._engine = create_engine(self._config)
        # Rows outlive their session as read snapshots for views
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.debug("Datastore opened (%s)", self._config.engine.value)

    async def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.debug("Datastore closed")

    def session(self) -> AsyncSession:
        """Create a new async session (use as an async context manager).

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._sessions is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._sessions()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction committed on normal exit."""
        async with self.session() as session, session.begin():
            yield session

    async def create_schema(self) -> None:
        """Create the invoice, offer and webhook tables that do not exist yet.

        Existing tables are left untouched; there is no migration history.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
