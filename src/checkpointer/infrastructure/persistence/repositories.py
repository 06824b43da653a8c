"""Repository implementations for the game catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from checkpointer.domain.entities import SyncState

from .batch_utils import (
    DEFAULT_CHUNK_SIZE,
    bulk_insert_ignore,
    bulk_upsert,
    chunked,
    dialect_insert,
)
from .models import (
    AppSettingsModel,
    GameGenreModel,
    GameImageModel,
    GameKeywordModel,
    GameLinkModel,
    GameModel,
    GamePlatformModel,
    GenreModel,
    KeywordModel,
    PlatformModel,
)

logger = logging.getLogger(__name__)

LookupModel = type[GenreModel] | type[PlatformModel] | type[KeywordModel]

# Hey future me - every table that the sync rebuilds from scratch per game. Order matters
# only for readability, they're all independent children of games.
DERIVED_ROW_MODELS = (
    GameGenreModel,
    GamePlatformModel,
    GameKeywordModel,
    GameImageModel,
    GameLinkModel,
)

# Columns the sync overwrites when a game already exists. rating/rating_count are user-review
# aggregates and deliberately NOT in this list.
GAME_SYNC_UPDATE_COLUMNS = (
    "name",
    "slug",
    "summary",
    "release_date",
    "cover_url",
    "igdb_rating",
    "updated_at",
)


class SyncStateRepository:
    """Repository for the catalog sync checkpoint.

    Single row in app_settings keyed ``igdb_sync_state``. No optimistic locking - the sync
    assumes exactly ONE driver runs at a time. Two concurrent runs would overwrite each
    other's checkpoints (last writer wins).
    """

    SYNC_STATE_KEY = "igdb_sync_state"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    async def get(self) -> SyncState | None:
        """Load the checkpoint, or None if no sync has ever run."""
        stmt = select(AppSettingsModel.value).where(
            AppSettingsModel.key == self.SYNC_STATE_KEY
        )
        result = await self.session.execute(stmt)
        value = result.scalar_one_or_none()
        if value is None:
            return None
        return SyncState.from_dict(value)

    # Listen up - dialect-native UPSERT so the write is atomic even without a prior read.
    async def set(self, state: SyncState) -> None:
        """Store the checkpoint (insert or overwrite)."""
        now = datetime.now(UTC)
        stmt = dialect_insert(self.session, AppSettingsModel).values(
            key=self.SYNC_STATE_KEY, value=state.to_dict(), updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded["value"], "updated_at": stmt.excluded["updated_at"]},
        )
        await self.session.execute(stmt)


class LookupRepository:
    """Repository for genres, platforms and keywords (keyed by IGDB id)."""

    def __init__(self, session: AsyncSession, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize repository with database session."""
        self.session = session
        self.chunk_size = chunk_size

    async def load_id_map(self, model: LookupModel) -> dict[int, str]:
        """Load the full igdb_id -> internal id map for one lookup table."""
        stmt = select(model.igdb_id, model.id).where(model.igdb_id.is_not(None))
        result = await self.session.execute(stmt)
        return {igdb_id: internal_id for igdb_id, internal_id in result.all()}

    async def get_id_map(self, model: LookupModel, igdb_ids: Iterable[int]) -> dict[int, str]:
        """Resolve internal ids for the given IGDB ids (missing ids are omitted)."""
        ids = list(igdb_ids)
        mapping: dict[int, str] = {}
        for chunk in chunked(ids, self.chunk_size):
            stmt = select(model.igdb_id, model.id).where(model.igdb_id.in_(chunk))
            result = await self.session.execute(stmt)
            mapping.update({igdb_id: internal_id for igdb_id, internal_id in result.all()})
        return mapping

    async def insert_ignore(self, model: LookupModel, rows: Sequence[dict[str, Any]]) -> None:
        """Insert lookup rows, skipping any that already exist (by igdb_id, name or slug)."""
        await bulk_insert_ignore(self.session, model, rows, self.chunk_size)

    async def list_by_name(self, model: LookupModel) -> list[Any]:
        """All rows of a lookup table ordered by name."""
        result = await self.session.execute(select(model).order_by(model.name))
        return list(result.scalars().all())


class GameRepository:
    """Repository for games and their derived rows (junctions, images, links)."""

    def __init__(self, session: AsyncSession, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize repository with database session."""
        self.session = session
        self.chunk_size = chunk_size

    async def upsert_games(self, rows: Sequence[dict[str, Any]]) -> None:
        """Insert games or overwrite their IGDB-derived columns, matching on igdb_id."""
        await bulk_upsert(
            self.session,
            GameModel,
            rows,
            conflict_columns=["igdb_id"],
            update_columns=GAME_SYNC_UPDATE_COLUMNS,
            chunk_size=self.chunk_size,
        )

    async def get_id_map(self, igdb_ids: Iterable[int]) -> dict[int, str]:
        """Resolve internal game ids for the given IGDB ids."""
        ids = list(igdb_ids)
        mapping: dict[int, str] = {}
        for chunk in chunked(ids, self.chunk_size):
            stmt = select(GameModel.igdb_id, GameModel.id).where(GameModel.igdb_id.in_(chunk))
            result = await self.session.execute(stmt)
            mapping.update({igdb_id: game_id for igdb_id, game_id in result.all()})
        return mapping

    async def get_by_igdb_id(self, igdb_id: int) -> GameModel | None:
        """Get a game by its IGDB id."""
        stmt = select(GameModel).where(GameModel.igdb_id == igdb_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # Hey future me - this is the "full replace" half of the sync. We wipe EVERYTHING derived
    # for the touched games and re-insert from the fresh IGDB snapshot. No diffing. Runs inside
    # the page transaction, so readers never see a game with zero genres mid-sync.
    async def delete_derived_rows(self, game_ids: Sequence[str]) -> None:
        """Delete junction, image and link rows for the given games."""
        for chunk in chunked(game_ids, self.chunk_size):
            for model in DERIVED_ROW_MODELS:
                await self.session.execute(delete(model).where(model.game_id.in_(chunk)))

    async def insert_derived_rows(
        self,
        genres: Sequence[dict[str, Any]],
        platforms: Sequence[dict[str, Any]],
        keywords: Sequence[dict[str, Any]],
        images: Sequence[dict[str, Any]],
        links: Sequence[dict[str, Any]],
    ) -> None:
        """Bulk insert freshly derived rows, ignoring duplicates."""
        await bulk_insert_ignore(self.session, GameGenreModel, genres, self.chunk_size)
        await bulk_insert_ignore(self.session, GamePlatformModel, platforms, self.chunk_size)
        await bulk_insert_ignore(self.session, GameKeywordModel, keywords, self.chunk_size)
        await bulk_insert_ignore(self.session, GameImageModel, images, self.chunk_size)
        await bulk_insert_ignore(self.session, GameLinkModel, links, self.chunk_size)
