"""Turn one fetched page of IGDB catalog records into catalog rows.

Hey future me - this is where a page of ~500 games fans out into thousands of rows!

    CatalogRecord[]  ─►  games (upsert on igdb_id)
                     ─►  genres / platforms / keywords (insert-ignore, created once)
                     ─►  game_genres / game_platforms / game_keywords  ┐
                     ─►  game_images (screenshots + artworks)         ├ FULL REPLACE
                     ─►  game_links (websites)                        ┘

"Full replace" = for every game in the page we delete ALL its junction/image/link rows
and re-insert them from the record. No diffing, so stale genres never survive a sync.

The processor never commits. The sync driver hands in a session from
Database.session_scope() and commits the page (plus its checkpoint) in one go.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from checkpointer.domain.dtos import CatalogRecord, ImageRefDTO, LookupRef
from checkpointer.domain.value_objects import (
    ImageType,
    igdb_cover_url,
    igdb_image_url,
    map_website_category,
)
from checkpointer.infrastructure.persistence import (
    GameRepository,
    GenreModel,
    KeywordModel,
    LookupRepository,
    PlatformModel,
)
from checkpointer.infrastructure.persistence.batch_utils import DEFAULT_CHUNK_SIZE
from checkpointer.infrastructure.persistence.models import new_uuid, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LookupMaps:
    """IGDB id -> internal id maps for the lookup tables, scoped to one sync run.

    The driver loads these once per run, passes them into every ``process()`` call and
    adopts the returned copy only after the page committed. A rolled-back page therefore
    never leaves ids in the maps that don't exist in the database.
    """

    genres: dict[int, str] = field(default_factory=dict)
    platforms: dict[int, str] = field(default_factory=dict)
    keywords: dict[int, str] = field(default_factory=dict)

    def copy(self) -> LookupMaps:
        return LookupMaps(
            genres=dict(self.genres),
            platforms=dict(self.platforms),
            keywords=dict(self.keywords),
        )

    @classmethod
    async def load(cls, lookups: LookupRepository) -> LookupMaps:
        """Pre-load every known lookup entity from the database."""
        return cls(
            genres=await lookups.load_id_map(GenreModel),
            platforms=await lookups.load_id_map(PlatformModel),
            keywords=await lookups.load_id_map(KeywordModel),
        )


@dataclass(frozen=True)
class BatchResult:
    """Outcome of processing one page.

    Attributes:
        max_updated_at: Highest IGDB ``updated_at`` (epoch seconds) in the page, 0 if none
        games_written: Number of game rows upserted (named, de-duplicated records)
        lookup_maps: Maps including any lookup entities created by this page
    """

    max_updated_at: int
    games_written: int
    lookup_maps: LookupMaps


def _release_date(epoch_seconds: int | None) -> datetime | None:
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(epoch_seconds, UTC)


def _igdb_rating(total_rating: float | None) -> Decimal:
    if not total_rating:
        return Decimal("0")
    return Decimal(str(total_rating)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _collect_lookups(
    refs: Iterable[LookupRef], known: dict[int, str]
) -> dict[int, LookupRef]:
    """Distinct refs (by IGDB id) that aren't in ``known`` yet."""
    unknown: dict[int, LookupRef] = {}
    for ref in refs:
        if ref.igdb_id not in known:
            unknown.setdefault(ref.igdb_id, ref)
    return unknown


def _lookup_row(ref: LookupRef, with_abbreviation: bool = False) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": new_uuid(),
        "igdb_id": ref.igdb_id,
        "name": ref.name,
        "slug": ref.slug,
    }
    if with_abbreviation:
        row["abbreviation"] = ref.abbreviation
    return row


def _image_rows(
    game_id: str, images: Sequence[ImageRefDTO], image_type: ImageType
) -> list[dict[str, Any]]:
    return [
        {
            "id": new_uuid(),
            "game_id": game_id,
            "igdb_image_id": image.image_id,
            "image_type": image_type.value,
            "url": igdb_image_url(image.image_id),
            "width": image.width,
            "height": image.height,
            "position": position,
        }
        for position, image in enumerate(images)
    ]


class CatalogBatchProcessor:
    """Upserts one page of catalog records and rebuilds their derived rows."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    async def process(
        self,
        session: AsyncSession,
        records: Sequence[CatalogRecord],
        maps: LookupMaps,
    ) -> BatchResult:
        """Write one page of records.

        Args:
            session: Open session; the caller commits
            records: Page of records as fetched from IGDB
            maps: Lookup maps known so far in this run (not mutated)

        Returns:
            BatchResult with the page watermark and the updated lookup maps
        """
        games = GameRepository(session, self.chunk_size)
        lookups = LookupRepository(session, self.chunk_size)
        maps = maps.copy()

        # 1. Nameless entries are IGDB noise, not errors. Later duplicates of an id win.
        named = [r for r in records if r.has_name]
        skipped = len(records) - len(named)
        if skipped:
            logger.debug("Skipping %d catalog records without a name", skipped)
        unique = list({r.igdb_id: r for r in named}.values())
        if not unique:
            return BatchResult(max_updated_at=0, games_written=0, lookup_maps=maps)

        # 2. Upsert core game rows and track the page watermark
        max_updated_at = max((r.updated_at or 0 for r in unique), default=0)
        now = utc_now()
        await games.upsert_games([self._game_row(r, now) for r in unique])

        # 3. Read back internal ids (existing games keep theirs)
        game_ids = await games.get_id_map(r.igdb_id for r in unique)

        # 4 + 5. Create unseen lookup entities, then learn their ids
        await self._sync_lookups(lookups, unique, maps)

        # 6. Full replace: drop every derived row of the touched games
        await games.delete_derived_rows(list(game_ids.values()))

        # 7. Re-derive everything from the fresh records
        genre_rows: list[dict[str, Any]] = []
        platform_rows: list[dict[str, Any]] = []
        keyword_rows: list[dict[str, Any]] = []
        image_rows: list[dict[str, Any]] = []
        link_rows: list[dict[str, Any]] = []

        for record in unique:
            game_id = game_ids.get(record.igdb_id)
            if game_id is None:
                continue

            genre_rows.extend(
                {"game_id": game_id, "genre_id": genre_id}
                for genre_id in self._resolve(record.genres, maps.genres)
            )
            platform_rows.extend(
                {"game_id": game_id, "platform_id": platform_id}
                for platform_id in self._resolve(record.platforms, maps.platforms)
            )
            keyword_rows.extend(
                {"game_id": game_id, "keyword_id": keyword_id}
                for keyword_id in self._resolve(record.keywords, maps.keywords)
            )
            image_rows.extend(_image_rows(game_id, record.screenshots, ImageType.SCREENSHOT))
            image_rows.extend(_image_rows(game_id, record.artworks, ImageType.ARTWORK))
            link_rows.extend(
                {
                    "id": new_uuid(),
                    "game_id": game_id,
                    "category": map_website_category(website.category).value,
                    "url": website.url,
                    "label": None,
                }
                for website in record.websites
            )

        await games.insert_derived_rows(
            genres=genre_rows,
            platforms=platform_rows,
            keywords=keyword_rows,
            images=image_rows,
            links=link_rows,
        )

        logger.debug(
            "Processed page: %d games, %d genre links, %d images, %d links",
            len(unique),
            len(genre_rows),
            len(image_rows),
            len(link_rows),
        )
        return BatchResult(
            max_updated_at=max_updated_at,
            games_written=len(unique),
            lookup_maps=maps,
        )

    @staticmethod
    def _game_row(record: CatalogRecord, now: datetime) -> dict[str, Any]:
        return {
            # Only used when the game is new; ON CONFLICT never touches id
            "id": new_uuid(),
            "igdb_id": record.igdb_id,
            "name": record.name,
            "slug": record.slug,
            "summary": record.summary,
            "release_date": _release_date(record.first_release_date),
            "cover_url": igdb_cover_url(record.cover_image_id)
            if record.cover_image_id
            else None,
            "igdb_rating": _igdb_rating(record.total_rating),
            "updated_at": now,
        }

    async def _sync_lookups(
        self,
        lookups: LookupRepository,
        records: Sequence[CatalogRecord],
        maps: LookupMaps,
    ) -> None:
        """Insert-ignore lookup entities missing from ``maps`` and add their ids to it."""
        targets = (
            (GenreModel, maps.genres, [g for r in records for g in r.genres], False),
            (PlatformModel, maps.platforms, [p for r in records for p in r.platforms], True),
            (KeywordModel, maps.keywords, [k for r in records for k in r.keywords], False),
        )
        for model, known, refs, with_abbreviation in targets:
            unknown = _collect_lookups(refs, known)
            if not unknown:
                continue
            await lookups.insert_ignore(
                model, [_lookup_row(ref, with_abbreviation) for ref in unknown.values()]
            )
            # An ignored insert (name/slug clash with another IGDB id) stays unresolved
            # and its junction rows are skipped below.
            known.update(await lookups.get_id_map(model, unknown.keys()))

    @staticmethod
    def _resolve(refs: Iterable[LookupRef], known: dict[int, str]) -> list[str]:
        """Internal ids for refs, de-duplicated, unknown refs dropped."""
        resolved: list[str] = []
        for ref in refs:
            internal_id = known.get(ref.igdb_id)
            if internal_id is not None and internal_id not in resolved:
                resolved.append(internal_id)
        return resolved
