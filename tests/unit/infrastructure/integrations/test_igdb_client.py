"""Tests for the IGDB client (token handling, page fetches, retries)."""

from unittest.mock import AsyncMock

import pytest
from pytest_httpx import HTTPXMock

from checkpointer.config import IGDBSettings
from checkpointer.domain.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    RateLimitExceededError,
)
from checkpointer.infrastructure.integrations.igdb_client import (
    IGDBClient,
    build_game_type_filter,
    build_games_query,
)
from checkpointer.infrastructure.retry import RetryPolicy

TOKEN_URL = "https://id.twitch.tv/oauth2/token"
GAMES_URL = "https://api.igdb.com/v4/games"
COUNT_URL = "https://api.igdb.com/v4/games/count"


@pytest.fixture
def igdb_settings() -> IGDBSettings:
    return IGDBSettings(client_id="test-client", client_secret="test-secret")


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
async def client(igdb_settings: IGDBSettings, sleep: AsyncMock):
    igdb = IGDBClient(igdb_settings, retry_policy=RetryPolicy(max_attempts=3, sleep=sleep))
    yield igdb
    await igdb.close()


class TestQueryBuilder:
    """Test Apicalypse query construction."""

    def test_game_type_filter(self) -> None:
        assert (
            build_game_type_filter([0, 2, 4, 8, 9, 10, 11, 12, 14])
            == "where game_type = (0,2,4,8,9,10,11,12,14)"
        )

    def test_games_query_is_sorted_and_paginated(self) -> None:
        query = build_games_query("where game_type = (0)", limit=500, offset=1000)

        assert query.startswith("fields name, slug, summary")
        assert "where game_type = (0); sort id asc; limit 500; offset 1000;" in query


class TestGetToken:
    """Test Twitch client-credentials token handling."""

    async def test_missing_credentials_fail_fast(self, httpx_mock: HTTPXMock) -> None:
        """Test that empty secrets raise without any HTTP request."""
        igdb = IGDBClient(IGDBSettings(client_id="", client_secret=""))

        with pytest.raises(ConfigurationError):
            await igdb.get_token()

        assert httpx_mock.get_requests() == []

    async def test_whitespace_secret_counts_as_missing(self, httpx_mock: HTTPXMock) -> None:
        settings = IGDBSettings(client_id="test-client", client_secret="   ")
        assert settings.is_configured is False

        with pytest.raises(ConfigurationError):
            await IGDBClient(settings).get_token()

        assert httpx_mock.get_requests() == []

    async def test_token_is_cached(self, client: IGDBClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=TOKEN_URL,
            method="POST",
            json={"access_token": "tok-1", "expires_in": 5_000_000, "token_type": "bearer"},
        )

        assert await client.get_token() == "tok-1"
        assert await client.get_token() == "tok-1"
        assert len(httpx_mock.get_requests()) == 1

    async def test_token_request_sends_client_credentials(
        self, client: IGDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=TOKEN_URL, method="POST", json={"access_token": "tok", "expires_in": 3600}
        )

        await client.get_token()

        body = httpx_mock.get_requests()[0].content.decode()
        assert "client_id=test-client" in body
        assert "grant_type=client_credentials" in body

    async def test_expired_token_is_refreshed(
        self, client: IGDBClient, httpx_mock: HTTPXMock
    ) -> None:
        """Test that a token inside the expiry margin is fetched again."""
        httpx_mock.add_response(
            url=TOKEN_URL, method="POST", json={"access_token": "old", "expires_in": 10}
        )
        httpx_mock.add_response(
            url=TOKEN_URL, method="POST", json={"access_token": "new", "expires_in": 10}
        )

        assert await client.get_token() == "old"
        assert await client.get_token() == "new"

    async def test_token_request_retries_server_errors(
        self, client: IGDBClient, httpx_mock: HTTPXMock, sleep: AsyncMock
    ) -> None:
        httpx_mock.add_response(url=TOKEN_URL, method="POST", status_code=503)
        httpx_mock.add_response(
            url=TOKEN_URL, method="POST", json={"access_token": "tok", "expires_in": 3600}
        )

        assert await client.get_token() == "tok"
        sleep.assert_awaited_once()


class TestFetch:
    """Test IGDB page fetches."""

    async def test_fetch_games_parses_records(
        self, client: IGDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=GAMES_URL,
            method="POST",
            json=[{"id": 42, "name": "Test Game"}, {"id": 43}],
        )

        records = await client.fetch_games("fields name;", "tok")

        assert [r.igdb_id for r in records] == [42, 43]
        request = httpx_mock.get_requests()[0]
        assert request.headers["Client-ID"] == "test-client"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.content == b"fields name;"

    async def test_count_games(self, client: IGDBClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=COUNT_URL, method="POST", json={"count": 1234})

        assert await client.count_games("where game_type = (0)", "tok") == 1234
        assert httpx_mock.get_requests()[0].content == b"where game_type = (0);"

    async def test_rate_limit_is_retried_with_backoff(
        self, client: IGDBClient, httpx_mock: HTTPXMock, sleep: AsyncMock
    ) -> None:
        httpx_mock.add_response(url=GAMES_URL, method="POST", status_code=429)
        httpx_mock.add_response(url=GAMES_URL, method="POST", json=[])

        assert await client.fetch_games("q", "tok") == []
        sleep.assert_awaited_once_with(2.0)

    async def test_rate_limit_gives_up_after_ceiling(
        self, client: IGDBClient, httpx_mock: HTTPXMock, sleep: AsyncMock
    ) -> None:
        for _ in range(3):
            httpx_mock.add_response(url=GAMES_URL, method="POST", status_code=429)

        with pytest.raises(RateLimitExceededError):
            await client.fetch_games("q", "tok")

        assert len(httpx_mock.get_requests()) == 3
        assert [call.args[0] for call in sleep.await_args_list] == [2.0, 4.0]

    async def test_server_error_raises_external_service_error(
        self, client: IGDBClient, httpx_mock: HTTPXMock
    ) -> None:
        for _ in range(3):
            httpx_mock.add_response(url=GAMES_URL, method="POST", status_code=500, text="oops")

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch("games", "q", "tok")

        assert exc_info.value.status_code == 500
