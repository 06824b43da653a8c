# Hey future me - ONE retry policy for every outbound call of the sync job!
#
# The token request and every IGDB page fetch go through RetryPolicy.run().
# Before this existed each call site had its own for-loop with sleep math,
# and they drifted apart (different waits, different "what is retryable").
#
# BACKOFF:
#   attempt 1 fails -> wait initial_delay
#   attempt 2 fails -> wait initial_delay * multiplier
#   ...
#   attempt max_attempts fails -> re-raise the last error
#
# The numbers come from SyncSettings (IGDB_SYNC_* env vars) - they're policy
# tuned against IGDB's 4 req/s limit, not something the protocol dictates.
#
# USAGE:
#   policy = RetryPolicy.from_settings(settings.sync)
#   data = await policy.run(lambda: client.post(...), description="igdb games")
"""Retry policy with exponential backoff for outbound calls."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import httpx

from checkpointer.domain.exceptions import ExternalServiceError, RateLimitExceededError

if TYPE_CHECKING:
    from checkpointer.config import SyncSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_provider_error(exc: BaseException) -> bool:
    """Check if an exception is worth retrying.

    Rate limits (429), provider errors (non-2xx), network failures and garbled
    JSON bodies are all retried. Anything else (ConfigurationError, bugs) is not.
    """
    return isinstance(
        exc,
        (
            RateLimitExceededError,
            ExternalServiceError,
            httpx.TransportError,
            json.JSONDecodeError,
        ),
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff retry policy.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Seconds to wait after the first failed attempt
        backoff_multiplier: Factor applied to the delay after each further failure
        max_delay: Upper bound for a single wait
        retry_on: Predicate deciding whether an exception is retryable
        sleep: Awaitable sleep function (swap it out in tests)
    """

    max_attempts: int = 3
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0
    max_delay: float = 60.0
    retry_on: Callable[[BaseException], bool] = is_transient_provider_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> RetryPolicy:
        """Build the policy from sync settings."""
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.backoff_initial_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            max_delay=settings.backoff_max_seconds,
            sleep=sleep,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = self.initial_delay * self.backoff_multiplier ** (attempt - 1)
        return min(delay, self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
    ) -> T:
        """Execute an async operation, retrying transient failures.

        Args:
            operation: Zero-argument callable returning an awaitable
            description: Human-readable name for log messages

        Returns:
            Result of the first successful attempt

        Raises:
            The last exception once max_attempts is exhausted, or any
            non-retryable exception immediately.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.retry_on(e):
                    raise

                if attempt >= self.max_attempts:
                    logger.error(
                        "%s failed after %d attempts, giving up: %s",
                        description,
                        self.max_attempts,
                        e,
                    )
                    raise

                delay = self.delay_for(attempt)
                if isinstance(e, RateLimitExceededError):
                    logger.warning(
                        "%s rate limited (attempt %d/%d), waiting %.1fs",
                        description,
                        attempt,
                        self.max_attempts,
                        delay,
                    )
                else:
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        description,
                        attempt,
                        self.max_attempts,
                        delay,
                        e,
                    )
                await self.sleep(delay)

        # Should not reach here, but just in case
        raise RuntimeError("Unexpected state in RetryPolicy.run")
