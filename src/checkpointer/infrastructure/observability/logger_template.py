"""Timed start/finish logging for long-running operations.

    logger = logging.getLogger(__name__)

    async with log_operation(logger, "catalog_sync", mode="full"):
        ...

emits ``catalog_sync.started``, then ``catalog_sync.completed`` or ``catalog_sync.failed``,
each with the keyword context as extra fields plus ``duration_ms`` on the closing record.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


@asynccontextmanager
async def log_operation(
    logger: logging.Logger, operation: str, **context: Any
) -> AsyncIterator[None]:
    """Log the start and end of ``operation``; exceptions are logged and re-raised."""
    started = time.perf_counter()

    def elapsed_ms() -> int:
        return round((time.perf_counter() - started) * 1000)

    logger.info("%s.started", operation, extra=context)
    try:
        yield
    except Exception as e:
        logger.error(
            "%s.failed",
            operation,
            extra={**context, "duration_ms": elapsed_ms(), "error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        raise
    else:
        logger.info("%s.completed", operation, extra={**context, "duration_ms": elapsed_ms()})
