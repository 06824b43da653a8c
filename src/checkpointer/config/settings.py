"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Hey future me - the sync job is long-running (hours for a full import), so
    pool_pre_ping matters on PostgreSQL. Idle connections get dropped by
    managed hosts between pages and pre-ping reconnects transparently.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=".env", extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./checkpointer.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class IGDBSettings(BaseSettings):
    """Credentials and endpoints for the IGDB catalog API.

    IGDB authenticates through Twitch, so the client id/secret are Twitch app
    credentials (TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET).
    """

    model_config = SettingsConfigDict(
        env_prefix="TWITCH_", env_file=".env", extra="ignore"
    )

    client_id: str = ""
    client_secret: str = ""
    token_url: str = "https://id.twitch.tv/oauth2/token"  # nosec B105 - public endpoint URL
    api_base_url: str = "https://api.igdb.com/v4"
    timeout: float = 30.0
    # Refresh the cached token this many seconds before Twitch says it expires
    token_expiry_margin_seconds: int = 300

    @property
    def is_configured(self) -> bool:
        """Check if both client id and secret are present."""
        return bool(self.client_id.strip() and self.client_secret.strip())


class SyncSettings(BaseSettings):
    """Tuning knobs for the catalog sync job.

    Hey future me - IGDB allows 4 requests/second. The 0.28s delay between pages
    keeps us at ~3.5 req/s. The backoff numbers are policy, not protocol - tweak
    them here (or via IGDB_SYNC_* env vars) instead of hunting through code.
    """

    model_config = SettingsConfigDict(
        env_prefix="IGDB_SYNC_", env_file=".env", extra="ignore"
    )

    batch_size: int = Field(default=500, ge=1, le=500)
    request_delay_seconds: float = Field(default=0.28, ge=0.0)
    max_attempts: int = Field(default=3, ge=1)
    backoff_initial_seconds: float = Field(default=2.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    backoff_max_seconds: float = Field(default=60.0, ge=0.0)
    incremental_buffer_seconds: int = Field(default=3600, ge=0)
    db_insert_chunk: int = Field(default=500, ge=1)
    # main game, expansion, standalone expansion, remake, remaster,
    # expanded game, port, fork, updated version
    game_types: list[int] = Field(default=[0, 2, 4, 8, 9, 10, 11, 12, 14])


class CacheSettings(BaseSettings):
    """In-process cache settings."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", env_file=".env", extra="ignore")

    filter_options_ttl_seconds: int = Field(default=600, ge=0)


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore")

    json_format: bool = False


class Settings(BaseSettings):
    """Root settings object grouping all sub-settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "checkpointer"
    app_env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    igdb: IGDBSettings = Field(default_factory=IGDBSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


# Yo future me, cached so the whole process shares ONE Settings instance. Tests that need
# different values should build Settings(...) directly instead of calling this.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
