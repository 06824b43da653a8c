"""IGDB HTTP client with Twitch client-credentials auth and retry."""

import logging
import time
from typing import Any, cast

import httpx

from checkpointer.config.settings import IGDBSettings
from checkpointer.domain.dtos import CatalogRecord
from checkpointer.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
)
from checkpointer.infrastructure.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Hey future me - this is everything the batch processor reads. If you add a column to
# GameModel that comes from IGDB, add the field here too or it'll always be None!
IGDB_GAME_FIELDS = (
    "fields name, slug, summary, first_release_date, "
    "cover.image_id, "
    "total_rating, total_rating_count, updated_at, "
    "genres.name, genres.slug, "
    "platforms.name, platforms.slug, platforms.abbreviation, "
    "keywords.name, keywords.slug, "
    "screenshots.image_id, screenshots.width, screenshots.height, "
    "artworks.image_id, artworks.width, artworks.height, "
    "websites.category, websites.url;"
)


def build_game_type_filter(game_types: list[int]) -> str:
    """Build the base ``where`` clause restricting results to real games."""
    return f"where game_type = ({','.join(str(t) for t in game_types)})"


def build_games_query(where: str, limit: int, offset: int) -> str:
    """Build an Apicalypse query for one page of games.

    Sorting by id keeps offset pagination stable across retries and resumes.
    """
    return f"{IGDB_GAME_FIELDS} {where}; sort id asc; limit {limit}; offset {offset};"


class IGDBClient:
    """HTTP client for the IGDB v4 API."""

    # Hey future me, same lazy-client trick as every other client: DON'T create the
    # httpx.AsyncClient in __init__, it must be created inside the running event loop.
    def __init__(
        self,
        settings: IGDBSettings,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize IGDB client.

        Args:
            settings: IGDB/Twitch configuration
            retry_policy: Backoff policy for token and API requests
        """
        self.settings = settings
        self.retry_policy = retry_policy or RetryPolicy()
        self._client: httpx.AsyncClient | None = None
        self._token: str | None = None
        self._token_expires_at: float = 0.0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "IGDBClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _require_credentials(self) -> None:
        if not self.settings.is_configured:
            raise ConfigurationError(
                "Missing TWITCH_CLIENT_ID or TWITCH_CLIENT_SECRET. "
                "Create a Twitch application at https://dev.twitch.tv/console "
                "and set both in your environment or .env file."
            )

    # Yo future me, client-credentials tokens last ~60 days, but a full sync can still
    # outlive one if you're unlucky. We cache the token and re-fetch once we're inside
    # token_expiry_margin_seconds of expiry. Missing secrets fail FAST, no retry.
    async def get_token(self) -> str:
        """Get a bearer token for IGDB, fetching a new one if needed.

        Returns:
            Access token string

        Raises:
            ConfigurationError: If client id or secret is not configured
            ExternalServiceError: If Twitch keeps rejecting the token request
        """
        self._require_credentials()

        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        data = await self.retry_policy.run(self._request_token, "twitch token request")
        token = data.get("access_token")
        if not token:
            raise ExternalServiceError("Twitch token response did not contain access_token")

        expires_in = int(data.get("expires_in") or 0)
        self._token = cast(str, token)
        self._token_expires_at = time.monotonic() + max(
            expires_in - self.settings.token_expiry_margin_seconds, 0
        )
        logger.info("Obtained IGDB access token (expires in %ds)", expires_in)
        return self._token

    async def _request_token(self) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.post(
            self.settings.token_url,
            data={
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
                "grant_type": "client_credentials",
            },
        )
        self._raise_for_status(response, "Twitch token request")
        return cast(dict[str, Any], response.json())

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.status_code == 429:
            raise RateLimitExceededError(
                f"{what} rate limited (429)", status_code=response.status_code
            )
        if response.is_error:
            raise ExternalServiceError(
                f"{what} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

    async def fetch(self, endpoint: str, query: str, token: str) -> Any:
        """POST an Apicalypse query to an IGDB endpoint.

        Retries 429s, non-2xx responses and network errors with the retry policy.

        Args:
            endpoint: Endpoint path relative to the API base (e.g. "games")
            query: Apicalypse query body
            token: Bearer token from get_token()

        Returns:
            Parsed JSON body
        """
        url = f"{self.settings.api_base_url.rstrip('/')}/{endpoint}"

        async def _do_request() -> Any:
            client = await self._get_client()
            response = await client.post(
                url,
                content=query,
                headers={
                    "Client-ID": self.settings.client_id,
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "text/plain",
                },
            )
            self._raise_for_status(response, f"IGDB {endpoint}")
            return response.json()

        return await self.retry_policy.run(_do_request, f"IGDB {endpoint}")

    async def fetch_games(self, query: str, token: str) -> list[CatalogRecord]:
        """Fetch one page of games and parse them into CatalogRecords."""
        data = await self.fetch("games", query, token)
        return [CatalogRecord.from_api(item) for item in data or []]

    async def count_games(self, where: str, token: str) -> int:
        """Count games matching a where clause (progress reporting only)."""
        data = await self.fetch("games/count", f"{where};", token)
        return int(data.get("count", 0))
