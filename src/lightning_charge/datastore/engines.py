"""Async SQLAlchemy engine construction for the invoice store.

SQLite (aiosqlite) is the default and is what a single charge process
normally runs on. File databases are switched to WAL so the payment
listener can write while waiters and the reconciler read. PostgreSQL
(asyncpg) gets a bounded, pre-pinged pool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from lightning_charge.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from lightning_charge.config.settings import DatabaseConfig

# Seconds a writer waits on the SQLite file lock before failing
SQLITE_BUSY_TIMEOUT = 15


def is_memory_dsn(dsn: str) -> bool:
    """True for ``sqlite+aiosqlite://`` and ``...:///:memory:`` URLs."""
    return dsn.rstrip("/").endswith(("sqlite+aiosqlite:", ":memory:"))


def _set_wal_mode(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _sqlite_engine(config: DatabaseConfig) -> AsyncEngine:
    engine = create_async_engine(
        config.dsn,
        echo=config.debug_sql,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
    )
    if not is_memory_dsn(config.dsn):
        event.listen(engine.sync_engine, "connect", _set_wal_mode)
    return engine


def _postgres_engine(config: DatabaseConfig) -> AsyncEngine:
    return create_async_engine(
        config.dsn,
        echo=config.debug_sql,
        pool_size=config.max_idle_connections,
        max_overflow=max(config.max_open_connections - config.max_idle_connections, 0),
        pool_pre_ping=True,
    )


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create the async engine selected by ``config.engine``.

    Raises:
        ValueError: If the DSN does not belong to the selected backend.
    """
    if not config.dsn.startswith(config.engine.value):
        msg = f"DSN {config.dsn!r} does not match database engine {config.engine.value!r}"
        raise ValueError(msg)
    if config.engine is DatabaseEngine.POSTGRESQL:
        return _postgres_engine(config)
    return _sqlite_engine(config)
