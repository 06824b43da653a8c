"""Async engine + transaction scopes for the catalog database."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from checkpointer.config import DatabaseSettings, Settings

from .models import Base

logger = logging.getLogger(__name__)


def _engine_options(db: DatabaseSettings, backend: str) -> dict[str, Any]:
    """Engine kwargs per backend.

    PostgreSQL gets the pool sizing from settings. SQLite gets a generous busy timeout
    since the sync holds a write transaction for a whole page.
    """
    options: dict[str, Any] = {"echo": db.echo, "pool_pre_ping": db.pool_pre_ping}
    if backend == "postgresql":
        options |= {
            "pool_size": db.pool_size,
            "max_overflow": db.max_overflow,
            "pool_timeout": db.pool_timeout,
            "pool_recycle": db.pool_recycle,
        }
    elif backend == "sqlite":
        options["connect_args"] = {"timeout": 30}
    return options


def _sqlite_on_connect(dbapi_conn: Any, _record: Any) -> None:
    # SQLite ships with FK enforcement off; the junction tables' ON DELETE CASCADE needs it
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        url = make_url(settings.database.url)
        self.backend = url.get_backend_name()

        self._engine = create_async_engine(url, **_engine_options(settings.database, self.backend))
        if self.backend == "sqlite":
            event.listen(self._engine.sync_engine, "connect", _sqlite_on_connect)

        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.debug("Database engine created (%s)", self.backend)

    # Hey future me - THE transaction boundary of the sync job! The driver opens one scope
    # per page, so a page's game upserts, derived-row delete+insert and checkpoint commit
    # together or not at all.
    @asynccontextmanager
    async def session_scope(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit when the block succeeds, roll back and re-raise otherwise."""
        async with self._sessions() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            await session.commit()

    async def close(self) -> None:
        await self._engine.dispose()

    # Tests build the schema from metadata; real deployments run `alembic upgrade head`
    async def create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
