"""Genre/platform options for the catalog browse filters."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from checkpointer.application.cache import BaseCache, InMemoryCache
from checkpointer.infrastructure.persistence import (
    Database,
    GenreModel,
    LookupRepository,
    PlatformModel,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterOption:
    """One dropdown entry."""

    id: str
    name: str
    slug: str


@dataclass(frozen=True)
class FilterOptions:
    """All browse filter dropdown values, each list sorted by name."""

    genres: list[FilterOption]
    platforms: list[FilterOption]


# Hey future me - the browse page asks for these on EVERY load, but genres/platforms only
# change when a sync creates a new one. So: one cache key, TTL from CacheSettings (10 min by
# default). The sync runs in its own process and can't reach this cache, so the TTL is the
# only staleness bound. Call invalidate() if you ever add/rename lookups in-process.
class FilterOptionsService:
    """Serves filter dropdown options from the DB, memoised in a TTL cache."""

    CACHE_KEY = "filter_options"

    def __init__(
        self,
        db: Database,
        ttl_seconds: int | None = None,
        cache: BaseCache[str, FilterOptions] | None = None,
    ) -> None:
        self.db = db
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else db.settings.cache.filter_options_ttl_seconds
        )
        self.cache: BaseCache[str, FilterOptions] = cache or InMemoryCache()

    async def get_filter_options(self) -> FilterOptions:
        """Get genres and platforms sorted by name (cached)."""
        cached = await self.cache.get(self.CACHE_KEY)
        if cached is not None:
            return cached

        async with self.db.session_scope() as session:
            lookups = LookupRepository(session)
            genres = await lookups.list_by_name(GenreModel)
            platforms = await lookups.list_by_name(PlatformModel)

        options = FilterOptions(
            genres=[FilterOption(id=g.id, name=g.name, slug=g.slug) for g in genres],
            platforms=[FilterOption(id=p.id, name=p.name, slug=p.slug) for p in platforms],
        )
        await self.cache.set(self.CACHE_KEY, options, ttl_seconds=self.ttl_seconds)
        logger.debug(
            "Filter options loaded: %d genres, %d platforms",
            len(options.genres),
            len(options.platforms),
        )
        return options

    async def invalidate(self) -> None:
        """Drop the cached options so the next call reloads them."""
        await self.cache.delete(self.CACHE_KEY)
