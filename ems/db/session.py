"""
Async SQLAlchemy engine & session factory (aiosqlite driver by default).
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ems.core.config import settings


def enable_sqlite_foreign_keys(target: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target.sync_engine, "connect")
    def _set_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, **overrides) -> AsyncEngine:
    engine_args: dict = {"echo": False, "pool_pre_ping": True}
    if "postgresql" in url:
        engine_args.update({"pool_size": 20, "max_overflow": 10, "pool_recycle": 300})
    engine_args.update(overrides)
    new_engine = create_async_engine(url, **engine_args)
    enable_sqlite_foreign_keys(new_engine)
    return new_engine


engine = build_engine(settings.DATABASE_URL)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
