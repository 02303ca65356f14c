"""
Guide database engine and sessions

One async engine per process, created at startup. The ingestion core is
synchronous and runs inside ``AsyncSession.run_sync`` on a single
transaction per document.
"""
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from xmltv_sync.config import settings
from xmltv_sync.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def database_url(path: str | None = None) -> str:
    return f"sqlite+aiosqlite:///{path or settings.database_path}"


def apply_sqlite_pragmas(dbapi_conn, _) -> None:
    """Per-connection SQLite settings: WAL journal, enforced foreign keys, 64MB cache."""
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.execute("PRAGMA cache_size = -64000")
        cursor.execute("PRAGMA foreign_keys = ON")
    finally:
        cursor.close()


async def init_db() -> None:
    """Create the engine, the schema and the session factory"""
    global _engine, _session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return

    logger.info("Opening guide database at %s", settings.database_path)
    _engine = create_async_engine(
        database_url(),
        pool_pre_ping=True,
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    event.listen(_engine.sync_engine, "connect", apply_sqlite_pragmas)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Ingestion relies on autoflush so that lookups see rows created earlier in the pass
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False, autoflush=True)
    logger.info("Guide database ready")


async def close_db() -> None:
    """Dispose the engine on shutdown"""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database connections closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() during startup.")
    return _session_factory


async def get_db() -> AsyncIterator[AsyncSession]:
    """Database dependency for FastAPI"""
    async with get_session_factory()() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session wrapped in one transaction: committed on success, rolled back on error."""
    async with get_session_factory()() as session:
        async with session.begin():
            yield session


async def run_in_transaction(fn: Callable[..., T], *args: Any) -> T:
    """
    Run a synchronous ``fn(session, *args)`` inside one transaction

    Args:
        fn: Callable taking a synchronous ``Session`` as its first argument
        *args: Remaining positional arguments for ``fn``

    Returns:
        Whatever ``fn`` returns
    """
    async with session_scope() as session:
        return await session.run_sync(fn, *args)
