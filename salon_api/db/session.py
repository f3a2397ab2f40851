"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in production; SQLite (aiosqlite) for local runs,
with foreign keys switched on so the ON DELETE rules hold there too.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from salon_api.core.config import settings
from salon_api.db.base import Base

logger = logging.getLogger(__name__)

database_url = make_url(settings.DATABASE_URL)

engine_args: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
if database_url.get_backend_name() == "postgresql":
    engine_args.update(pool_size=20, max_overflow=10, pool_recycle=300)

engine = create_async_engine(database_url, **engine_args)

if database_url.get_backend_name() == "sqlite":

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """Create any missing tables; models must already be imported."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised (%s)", database_url.get_backend_name())
