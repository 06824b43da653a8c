# Hey future me - these are THE bulk write tools for the catalog sync!
#
# A sync page is ~500 games and fans out into thousands of junction/image/link
# rows. Adding ORM objects one by one would be painfully slow, so we build
# dialect-native INSERT ... ON CONFLICT statements instead:
#
#   bulk_upsert()        -> INSERT ... ON CONFLICT (key) DO UPDATE SET ...
#   bulk_insert_ignore() -> INSERT ... ON CONFLICT DO NOTHING
#
# GOLDEN RULE: these helpers NEVER commit. The caller owns the transaction
# (the sync driver commits once per page via Database.session_scope()).
#
# Rows are chunked because both SQLite and PostgreSQL cap the number of
# bound parameters per statement.
"""Bulk insert/upsert helpers for PostgreSQL and SQLite."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Any, TypeVar

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 500


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for i in range(0, len(items), size):
        yield items[i : i + size]


def dialect_insert(session: AsyncSession, model: Any) -> Any:
    """Create a dialect-specific INSERT that supports ON CONFLICT clauses.

    Both the PostgreSQL and SQLite Insert constructs expose
    on_conflict_do_update()/on_conflict_do_nothing() with the same signature.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(model)
    if dialect_name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Bulk upsert not supported for dialect '{dialect_name}'")


async def bulk_insert_ignore(
    session: AsyncSession,
    model: Any,
    rows: Sequence[dict[str, Any]],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Insert rows in chunks, silently skipping any that violate a unique constraint.

    Args:
        session: Database session (not committed here)
        model: ORM model class to insert into
        rows: Column dicts
        chunk_size: Rows per INSERT statement
    """
    if not rows:
        return
    for chunk in chunked(rows, chunk_size):
        stmt = dialect_insert(session, model).values(list(chunk)).on_conflict_do_nothing()
        await session.execute(stmt)


async def bulk_upsert(
    session: AsyncSession,
    model: Any,
    rows: Sequence[dict[str, Any]],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Insert rows in chunks, overwriting ``update_columns`` on key conflicts.

    Args:
        session: Database session (not committed here)
        model: ORM model class to upsert into
        rows: Column dicts (all must have the same keys)
        conflict_columns: Columns of the unique constraint to match on
        update_columns: Columns to overwrite from the incoming row on conflict
        chunk_size: Rows per INSERT statement
    """
    if not rows:
        return
    for chunk in chunked(rows, chunk_size):
        stmt = dialect_insert(session, model).values(list(chunk))
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={col: stmt.excluded[col] for col in update_columns},
        )
        await session.execute(stmt)
