"""Shared fixtures.

Hey future me - persistence tests use a temp-FILE SQLite database, not :memory:. With
aiosqlite every pooled connection would get its own empty in-memory DB, so tables created
by create_tables() would vanish for the next session.
"""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from checkpointer.config import Settings
from checkpointer.infrastructure.persistence import Database


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, with test IGDB credentials."""
    return Settings(
        app_env="test",
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"},
        igdb={"client_id": "test-client", "client_secret": "test-secret"},
        sync={"batch_size": 2, "request_delay_seconds": 0},
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncIterator[Database]:
    """Database with all catalog tables created."""
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()
