"""Infrastructure persistence layer."""

from .batch_utils import bulk_insert_ignore, bulk_upsert, chunked, dialect_insert
from .database import Database
from .models import (
    AppSettingsModel,
    Base,
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
from .repositories import GameRepository, LookupRepository, SyncStateRepository

__all__ = [
    # Database
    "Database",
    "Base",
    # Models
    "AppSettingsModel",
    "GameModel",
    "GenreModel",
    "PlatformModel",
    "KeywordModel",
    "GameGenreModel",
    "GamePlatformModel",
    "GameKeywordModel",
    "GameImageModel",
    "GameLinkModel",
    # Repositories
    "GameRepository",
    "LookupRepository",
    "SyncStateRepository",
    # Batch utilities
    "bulk_insert_ignore",
    "bulk_upsert",
    "chunked",
    "dialect_insert",
]
