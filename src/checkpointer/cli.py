"""Command-line entry point for the IGDB catalog sync.

Usage: checkpointer-sync [--full | --incremental]

Without a flag the mode is picked automatically (full on first run or after a failure,
incremental otherwise). Exit code 0 on success, 1 on any failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

import httpx

from checkpointer.application.services import CatalogSyncService
from checkpointer.config import Settings, get_settings
from checkpointer.domain.entities import SyncMode
from checkpointer.domain.exceptions import ConfigurationError, DomainException, SyncError
from checkpointer.infrastructure.integrations import IGDBClient
from checkpointer.infrastructure.observability import configure_logging, set_run_id
from checkpointer.infrastructure.persistence import Database
from checkpointer.infrastructure.retry import RetryPolicy

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkpointer-sync",
        description="Sync the game catalog from IGDB (full import or incremental update)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--full",
        dest="mode",
        action="store_const",
        const=SyncMode.FULL,
        help="Force a full import (resumes from the last checkpoint if the previous run failed)",
    )
    mode.add_argument(
        "--incremental",
        dest="mode",
        action="store_const",
        const=SyncMode.INCREMENTAL,
        help="Only fetch games updated since the last sync",
    )
    return parser


async def run_sync(settings: Settings, mode: SyncMode | None) -> int:
    """Wire up the sync from settings and run it once. Returns the exit code."""
    db = Database(settings)
    client = IGDBClient(settings.igdb, retry_policy=RetryPolicy.from_settings(settings.sync))
    service = CatalogSyncService(db, client, settings.sync)
    try:
        outcome = await service.run(override=mode)
    except ConfigurationError as e:
        logger.error("Sync not started: %s", e.message)
        return 1
    except SyncError as e:
        logger.error("Sync failed: %s", e.message)
        return 1
    # The token request runs before the sync loop, so provider/network errors there
    # arrive unwrapped
    except DomainException as e:
        logger.error("Sync not started: %s", e.message)
        return 1
    except httpx.HTTPError as e:
        logger.error("Sync not started: %s: %s", type(e).__name__, e)
        return 1
    finally:
        await client.close()
        await db.close()

    logger.info(
        "Sync complete: %s mode, %d pages, %d games, watermark %d",
        outcome.mode.value,
        outcome.pages,
        outcome.games_processed,
        outcome.last_sync_timestamp,
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.json_format,
        app_name=settings.app_name,
    )
    set_run_id()
    return asyncio.run(run_sync(settings, args.mode))


if __name__ == "__main__":
    sys.exit(main())
