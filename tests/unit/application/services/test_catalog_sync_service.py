"""Tests for the catalog sync driver (mode selection, checkpoints, resume, failure)."""

import re
from collections.abc import Sequence
from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from checkpointer.application.services import (
    BatchResult,
    CatalogBatchProcessor,
    CatalogSyncService,
    LookupMaps,
)
from checkpointer.config import Settings
from checkpointer.domain.dtos import CatalogRecord
from checkpointer.domain.entities import SyncMode, SyncState, SyncStatus
from checkpointer.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    SyncError,
)
from checkpointer.infrastructure.persistence import (
    Database,
    GameGenreModel,
    GameModel,
    GameRepository,
    GenreModel,
    SyncStateRepository,
)

RPG = {"id": 12, "name": "Role-playing (RPG)", "slug": "role-playing-rpg"}


def record(igdb_id: int, updated_at: int | None = None, **fields: Any) -> CatalogRecord:
    data: dict[str, Any] = {"id": igdb_id, "name": f"Game {igdb_id}", "slug": f"game-{igdb_id}"}
    if updated_at is not None:
        data["updated_at"] = updated_at
    data.update(fields)
    return CatalogRecord.from_api(data)


class FakeIGDBClient:
    """Serves pre-baked pages keyed by offset and records every query."""

    def __init__(
        self,
        pages: dict[int, list[CatalogRecord]] | None = None,
        errors: dict[int, Exception] | None = None,
        total: int = 0,
    ) -> None:
        self.pages = pages or {}
        self.errors = errors or {}
        self.total = total
        self.queries: list[str] = []
        self.count_wheres: list[str] = []

    async def get_token(self) -> str:
        return "tok"

    async def count_games(self, where: str, token: str) -> int:
        self.count_wheres.append(where)
        return self.total

    async def fetch_games(self, query: str, token: str) -> list[CatalogRecord]:
        self.queries.append(query)
        offset = self.offsets[-1]
        if offset in self.errors:
            raise self.errors[offset]
        return self.pages.get(offset, [])

    async def close(self) -> None:
        pass

    @property
    def offsets(self) -> list[int]:
        return [int(re.search(r"offset (\d+);", q).group(1)) for q in self.queries]


class CrashAfterDeleteProcessor(CatalogBatchProcessor):
    """Processes normally, except one page wipes earlier games' derived rows and then dies."""

    def __init__(self, crash_on_igdb_id: int, wipe_igdb_ids: list[int]) -> None:
        super().__init__()
        self.crash_on_igdb_id = crash_on_igdb_id
        self.wipe_igdb_ids = wipe_igdb_ids

    async def process(
        self, session: AsyncSession, records: Sequence[CatalogRecord], maps: LookupMaps
    ) -> BatchResult:
        if any(r.igdb_id == self.crash_on_igdb_id for r in records):
            games = GameRepository(session)
            ids = await games.get_id_map(self.wipe_igdb_ids)
            await games.delete_derived_rows(list(ids.values()))
            raise RuntimeError("crashed between delete and insert")
        return await super().process(session, records, maps)


async def load_state(db: Database) -> SyncState | None:
    async with db.session_scope() as session:
        return await SyncStateRepository(session).get()


async def save_state(db: Database, state: SyncState) -> None:
    async with db.session_scope() as session:
        await SyncStateRepository(session).set(state)


async def count(db: Database, model: Any) -> int:
    async with db.session_scope() as session:
        return int(await session.scalar(select(func.count()).select_from(model)) or 0)


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


def make_service(
    db: Database, settings: Settings, client: FakeIGDBClient, sleep: AsyncMock
) -> CatalogSyncService:
    return CatalogSyncService(db, client, settings.sync, sleep=sleep)  # type: ignore[arg-type]


class TestSelectMode:
    """Test automatic and forced mode selection."""

    @pytest.mark.parametrize(
        ("state", "expected"),
        [
            (None, SyncMode.FULL),
            (SyncState(last_sync_timestamp=1000, status=SyncStatus.FAILED), SyncMode.FULL),
            (SyncState(last_sync_timestamp=0, status=SyncStatus.IDLE), SyncMode.FULL),
            (SyncState(last_sync_timestamp=1000, status=SyncStatus.IDLE), SyncMode.INCREMENTAL),
        ],
    )
    def test_automatic(self, state: SyncState | None, expected: SyncMode) -> None:
        assert CatalogSyncService.select_mode(state) is expected

    def test_override_wins(self) -> None:
        assert CatalogSyncService.select_mode(None, SyncMode.INCREMENTAL) is SyncMode.INCREMENTAL
        idle = SyncState(last_sync_timestamp=1000)
        assert CatalogSyncService.select_mode(idle, SyncMode.FULL) is SyncMode.FULL


class TestFullSync:
    """Test full imports."""

    async def test_first_run_imports_everything(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        client = FakeIGDBClient(
            pages={0: [record(1, 100), record(2, 300)], 2: [record(3, 200)]},
            total=3,
        )

        outcome = await make_service(db, settings, client, sleep).run()

        assert outcome.mode is SyncMode.FULL
        assert outcome.pages == 2
        assert outcome.games_processed == 3
        assert client.offsets == [0, 2, 4]
        assert "where game_type = (0,2,4,8,9,10,11,12,14); sort id asc; limit 2;" in (
            client.queries[0]
        )
        assert client.count_wheres == ["where game_type = (0,2,4,8,9,10,11,12,14)"]
        assert await count(db, GameModel) == 3
        assert sleep.await_count == 2

        state = await load_state(db)
        assert state is not None
        assert state.status is SyncStatus.IDLE
        assert state.last_completed_offset == 0
        assert state.total_games_processed == 3
        assert state.last_sync_timestamp == 300
        assert state.error is None

    async def test_failure_keeps_last_checkpoint(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        """Test that a crash on page 2 records failed state with page 1's offset."""
        error = ExternalServiceError("IGDB games failed: 503", status_code=503)
        client = FakeIGDBClient(
            pages={0: [record(1, 100), record(2, 300)]}, errors={2: error}, total=4
        )

        with pytest.raises(SyncError) as exc_info:
            await make_service(db, settings, client, sleep).run()

        assert exc_info.value.mode == "full"
        assert exc_info.value.__cause__ is error
        state = await load_state(db)
        assert state is not None
        assert state.status is SyncStatus.FAILED
        assert state.last_completed_offset == 2
        assert state.total_games_processed == 2
        assert state.last_sync_timestamp == 300
        assert state.error == "IGDB games failed: 503"

    async def test_crash_mid_page_rolls_back_the_whole_page(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        """Test that a page dying after its deletes leaves the previous page's rows intact."""
        client = FakeIGDBClient(
            pages={
                0: [record(1, 100, genres=[RPG]), record(2, 200, genres=[RPG])],
                2: [record(3, 300, genres=[RPG])],
            },
            total=3,
        )
        service = CatalogSyncService(
            db,
            client,  # type: ignore[arg-type]
            settings.sync,
            processor=CrashAfterDeleteProcessor(crash_on_igdb_id=3, wipe_igdb_ids=[1, 2]),
            sleep=sleep,
        )

        with pytest.raises(SyncError) as exc_info:
            await service.run()

        assert str(exc_info.value.__cause__) == "crashed between delete and insert"
        assert await count(db, GameGenreModel) == 2
        assert await count(db, GameModel) == 2
        state = await load_state(db)
        assert state is not None
        assert state.status is SyncStatus.FAILED
        assert state.last_completed_offset == 2
        assert state.total_games_processed == 2
        assert state.last_sync_timestamp == 200

    async def test_resumes_from_failed_offset(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        """A failed run checkpointed at offset 1000, so the next full sync starts there."""
        await save_state(
            db,
            SyncState(
                last_sync_timestamp=500,
                last_completed_offset=1000,
                total_games_processed=1000,
                status=SyncStatus.FAILED,
                error="boom",
            ),
        )
        client = FakeIGDBClient(pages={1000: [record(1001, 700)]}, total=1001)

        outcome = await make_service(db, settings, client, sleep).run(SyncMode.FULL)

        assert client.offsets[0] == 1000
        assert outcome.games_processed == 1001
        state = await load_state(db)
        assert state is not None
        assert state.status is SyncStatus.IDLE
        assert state.last_completed_offset == 0
        assert state.last_sync_timestamp == 700
        assert state.error is None

    async def test_crash_then_automatic_rerun_resumes(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        pages = {0: [record(1, 100), record(2, 200)], 2: [record(3, 300)]}
        failing = FakeIGDBClient(
            pages=pages, errors={2: ExternalServiceError("down")}, total=3
        )
        with pytest.raises(SyncError):
            await make_service(db, settings, failing, sleep).run()

        healthy = FakeIGDBClient(pages=pages, total=3)
        await make_service(db, settings, healthy, sleep).run()

        assert healthy.offsets == [2, 4]
        assert await count(db, GameModel) == 3
        state = await load_state(db)
        assert state is not None
        assert state.total_games_processed == 3

    async def test_forced_full_after_success_starts_at_zero(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        await save_state(db, SyncState(last_sync_timestamp=1000, last_completed_offset=0))
        client = FakeIGDBClient(pages={0: [record(1, 900)]}, total=1)

        outcome = await make_service(db, settings, client, sleep).run(SyncMode.FULL)

        assert client.offsets == [0, 2]
        # Watermark never moves backwards
        assert outcome.last_sync_timestamp == 1000

    async def test_lookup_maps_carry_across_pages(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        client = FakeIGDBClient(
            pages={
                0: [record(1, genres=[RPG]), record(2, genres=[RPG])],
                2: [record(3, genres=[RPG])],
            },
            total=3,
        )

        await make_service(db, settings, client, sleep).run(SyncMode.FULL)

        assert await count(db, GenreModel) == 1
        assert await count(db, GameGenreModel) == 3


class TestIncrementalSync:
    """Test incremental updates."""

    async def test_advances_watermark(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        """Idle state at 1000, one page with max updated_at 1500 -> watermark 1500."""
        await save_state(db, SyncState(last_sync_timestamp=1000, status=SyncStatus.IDLE))
        client = FakeIGDBClient(pages={0: [record(1, 1200), record(2, 1500)]})

        outcome = await make_service(db, settings, client, sleep).run()

        assert outcome.mode is SyncMode.INCREMENTAL
        assert client.count_wheres == []
        state = await load_state(db)
        assert state is not None
        assert state.last_sync_timestamp == 1500
        assert state.status is SyncStatus.IDLE
        assert state.total_games_processed == 2
        assert state.last_completed_offset == 0

    async def test_query_uses_buffered_lower_bound(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        await save_state(db, SyncState(last_sync_timestamp=10_000))
        client = FakeIGDBClient()

        await make_service(db, settings, client, sleep).run()

        assert client.offsets == [0]
        assert (
            "where game_type = (0,2,4,8,9,10,11,12,14) & updated_at > 6400;"
            in client.queries[0]
        )

    async def test_watermark_never_decreases(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        """Re-fetched games inside the buffer window can't pull the watermark back."""
        await save_state(db, SyncState(last_sync_timestamp=5000))
        client = FakeIGDBClient(pages={0: [record(1, 4000)], 2: [record(2, 4500)]})

        outcome = await make_service(db, settings, client, sleep).run()

        assert outcome.last_sync_timestamp == 5000
        assert client.offsets == [0, 2, 4]

    async def test_failure_marks_failed_and_keeps_watermark(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        await save_state(db, SyncState(last_sync_timestamp=5000))
        client = FakeIGDBClient(
            pages={0: [record(1, 6000)]}, errors={2: ExternalServiceError("down")}
        )

        with pytest.raises(SyncError) as exc_info:
            await make_service(db, settings, client, sleep).run()

        assert exc_info.value.mode == "incremental"
        state = await load_state(db)
        assert state is not None
        assert state.status is SyncStatus.FAILED
        assert state.last_sync_timestamp == 5000
        assert state.error == "down"
        # Next automatic run is a full sync
        assert CatalogSyncService.select_mode(state) is SyncMode.FULL


class TestRunPreconditions:
    """Test failures before the sync starts."""

    async def test_missing_credentials_leave_state_untouched(
        self, db: Database, settings: Settings, sleep: AsyncMock
    ) -> None:
        client = FakeIGDBClient()
        client.get_token = AsyncMock(side_effect=ConfigurationError("no credentials"))  # type: ignore[method-assign]

        with pytest.raises(ConfigurationError):
            await make_service(db, settings, client, sleep).run()

        assert await load_state(db) is None
        assert client.queries == []
