"""Database engine construction and table creation.

Engines are built per store location and owned by the EventStore that opened
them; nothing here is cached at module level.
"""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models.base import Base
from .utils.logging import get_logger

logger = get_logger("database")


def database_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


def build_engine(
    path: Path,
    wal_mode: bool = True,
    busy_timeout: int = 5000,
    synchronous: str = "NORMAL",
    echo: bool = False,
) -> AsyncEngine:
    """Create an async engine for the SQLite file at ``path``.

    busy_timeout and synchronous are per-connection settings, so they are
    applied on every new DBAPI connection rather than once.
    """
    engine = create_async_engine(
        database_url(path),
        echo=echo,
        connect_args={"timeout": max(1, busy_timeout // 1000)},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _apply_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            if wal_mode:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
            cursor.execute(f"PRAGMA synchronous={synchronous}")
        finally:
            cursor.close()

    return engine


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables and indexes that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("tables_ready", url=str(engine.url))
