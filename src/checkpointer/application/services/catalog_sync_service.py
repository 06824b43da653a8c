"""Catalog sync driver: full and incremental IGDB imports with checkpointing.

Hey future me - the whole sync in one picture:

    run(override)
      ├─ get_token()                     missing secrets -> ConfigurationError, state untouched
      ├─ load SyncState, pick mode       override > (no state | failed | watermark 0 -> FULL) > INCREMENTAL
      ├─ persist status=running
      ├─ FULL:  count -> page loop from offset 0 (or last_completed_offset after a failure)
      │         every page: process + checkpoint in ONE transaction
      ├─ INCR:  page loop over "updated_at > watermark - buffer" from offset 0
      └─ persist status=idle, offset 0   |  on ANY error: persist status=failed + message, raise SyncError

Pages are fetched strictly one after another with a fixed delay in between (IGDB allows
4 req/s). There is NO locking: run exactly one sync process at a time (cron, not a fleet).
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from checkpointer.application.services.catalog_batch_processor import (
    CatalogBatchProcessor,
    LookupMaps,
)
from checkpointer.config import SyncSettings
from checkpointer.domain.entities import SyncMode, SyncState, SyncStatus, utc_now_iso
from checkpointer.domain.exceptions import SyncError
from checkpointer.infrastructure.integrations.igdb_client import (
    IGDBClient,
    build_game_type_filter,
    build_games_query,
)
from checkpointer.infrastructure.observability import log_operation
from checkpointer.infrastructure.persistence import (
    Database,
    LookupRepository,
    SyncStateRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Summary of a finished sync run."""

    mode: SyncMode
    pages: int
    games_processed: int
    last_sync_timestamp: int


class CatalogSyncService:
    """Drives full and incremental catalog syncs against IGDB."""

    def __init__(
        self,
        db: Database,
        client: IGDBClient,
        settings: SyncSettings,
        processor: CatalogBatchProcessor | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the sync driver.

        Args:
            db: Database providing one transaction scope per page
            client: IGDB client (token + page fetches, retried)
            settings: Batch size, inter-page delay, incremental buffer, game types
            processor: Batch processor (defaults to one using settings.db_insert_chunk)
            sleep: Awaitable sleep used for the inter-page delay (swap it out in tests)
        """
        self.db = db
        self.client = client
        self.settings = settings
        self.processor = processor or CatalogBatchProcessor(settings.db_insert_chunk)
        self._sleep = sleep

    @staticmethod
    def select_mode(state: SyncState | None, override: SyncMode | None = None) -> SyncMode:
        """Pick the sync mode for this run."""
        if override is not None:
            return override
        if state is None or state.status is SyncStatus.FAILED or state.last_sync_timestamp == 0:
            return SyncMode.FULL
        return SyncMode.INCREMENTAL

    async def run(self, override: SyncMode | None = None) -> SyncOutcome:
        """Run one sync and persist its final state.

        Raises:
            ConfigurationError: Credentials are missing (nothing persisted)
            SyncError: The run failed; state was set to failed with the error message
        """
        # Fail fast on missing credentials before touching the checkpoint
        await self.client.get_token()

        state = await self._load_state()
        mode = self.select_mode(state, override)
        base = state or SyncState.initial()
        logger.info(
            "Catalog sync mode: %s (previous status: %s)",
            mode.value,
            state.status.value if state else "none",
        )

        try:
            async with log_operation(logger, "catalog_sync", mode=mode.value):
                await self._save_state(
                    base.with_changes(status=SyncStatus.RUNNING, last_run_at=utc_now_iso())
                )
                if mode is SyncMode.FULL:
                    return await self.run_full(base)
                return await self.run_incremental(base)
        except Exception as e:
            await self._mark_failed(str(e) or type(e).__name__)
            raise SyncError(f"{mode.value} catalog sync failed: {e}", mode=mode.value) from e

    # Listen future me - resume only kicks in when the LAST run failed. The offset checkpoint
    # is written in the same transaction as the page it covers, so last_completed_offset
    # always points at the first page that did NOT commit.
    async def run_full(self, state: SyncState) -> SyncOutcome:
        """Import the whole catalog page by page, checkpointing after each page."""
        where = build_game_type_filter(self.settings.game_types)
        batch_size = self.settings.batch_size

        total_count = await self.client.count_games(where, await self.client.get_token())
        total_batches = max(math.ceil(total_count / batch_size), 1)
        logger.info("Total games to sync: %d", total_count)

        resuming = state.status is SyncStatus.FAILED
        offset = state.last_completed_offset if resuming else 0
        processed = state.total_games_processed if resuming else 0
        if offset > 0:
            logger.info("Resuming full sync from offset %d (previous run failed)", offset)

        watermark = state.last_sync_timestamp
        maps = await self._load_lookup_maps()
        pages = 0

        while True:
            records = await self.client.fetch_games(
                build_games_query(where, limit=batch_size, offset=offset),
                await self.client.get_token(),
            )
            if not records:
                logger.info("No more games to fetch, full sync complete")
                break

            batch_number = offset // batch_size + 1
            logger.info(
                "Batch %d/%d: processing %d games (offset %d)",
                batch_number,
                total_batches,
                len(records),
                offset,
            )

            async with self.db.session_scope() as session:
                result = await self.processor.process(session, records, maps)
                watermark = max(watermark, result.max_updated_at)
                processed += len(records)
                offset += batch_size
                checkpoint = state.with_changes(
                    status=SyncStatus.RUNNING,
                    last_completed_offset=offset,
                    total_games_processed=processed,
                    last_sync_timestamp=watermark,
                    last_run_at=utc_now_iso(),
                    error=None,
                )
                await SyncStateRepository(session).set(checkpoint)

            # Only adopt new lookup ids once the page is committed
            maps = result.lookup_maps
            pages += 1
            logger.info("Processed %d/%d games", processed, total_count)

            await self._sleep(self.settings.request_delay_seconds)

        await self._save_state(
            SyncState(
                last_sync_timestamp=watermark,
                last_completed_offset=0,
                total_games_processed=processed,
                status=SyncStatus.IDLE,
                last_run_at=utc_now_iso(),
            )
        )
        return SyncOutcome(
            mode=SyncMode.FULL,
            pages=pages,
            games_processed=processed,
            last_sync_timestamp=watermark,
        )

    # Hey future me - the buffer re-fetches the last hour: IGDB's updated_at can
    # land slightly behind its own clock. Re-processing a game is harmless (full replace is
    # idempotent). No per-page offset checkpoint here: pages are sorted by id, not by
    # updated_at, so a mid-run watermark would skip games. A failure flips the status to
    # failed and the next automatic run is a full sync anyway.
    async def run_incremental(self, state: SyncState) -> SyncOutcome:
        """Import games updated since the last watermark (minus a safety buffer)."""
        since = max(state.last_sync_timestamp - self.settings.incremental_buffer_seconds, 0)
        where = f"{build_game_type_filter(self.settings.game_types)} & updated_at > {since}"
        batch_size = self.settings.batch_size
        logger.info("Incremental sync: fetching games updated since %d", since)

        offset = 0
        processed = 0
        watermark = state.last_sync_timestamp
        maps = await self._load_lookup_maps()
        pages = 0

        while True:
            records = await self.client.fetch_games(
                build_games_query(where, limit=batch_size, offset=offset),
                await self.client.get_token(),
            )
            if not records:
                logger.info("No more updated games, incremental sync complete")
                break

            logger.info(
                "Batch %d: processing %d updated games (offset %d)",
                pages + 1,
                len(records),
                offset,
            )
            async with self.db.session_scope() as session:
                result = await self.processor.process(session, records, maps)

            maps = result.lookup_maps
            watermark = max(watermark, result.max_updated_at)
            processed += len(records)
            offset += batch_size
            pages += 1
            logger.info("Processed %d updated games so far", processed)

            await self._sleep(self.settings.request_delay_seconds)

        await self._save_state(
            SyncState(
                last_sync_timestamp=watermark,
                last_completed_offset=0,
                total_games_processed=processed,
                status=SyncStatus.IDLE,
                last_run_at=utc_now_iso(),
            )
        )
        return SyncOutcome(
            mode=SyncMode.INCREMENTAL,
            pages=pages,
            games_processed=processed,
            last_sync_timestamp=watermark,
        )

    async def _load_state(self) -> SyncState | None:
        async with self.db.session_scope() as session:
            return await SyncStateRepository(session).get()

    async def _save_state(self, state: SyncState) -> None:
        async with self.db.session_scope() as session:
            await SyncStateRepository(session).set(state)

    async def _load_lookup_maps(self) -> LookupMaps:
        async with self.db.session_scope() as session:
            return await LookupMaps.load(LookupRepository(session, self.settings.db_insert_chunk))

    # Yo, we re-read the state instead of reusing the in-memory copy: the last committed
    # checkpoint (offset of the last good page) is what the next full sync resumes from.
    async def _mark_failed(self, message: str) -> None:
        try:
            current = await self._load_state() or SyncState.initial()
            await self._save_state(
                current.with_changes(
                    status=SyncStatus.FAILED, error=message, last_run_at=utc_now_iso()
                )
            )
        except Exception:
            # The DB itself may be what broke. The original error still propagates.
            logger.exception("Could not persist failed sync state")
