"""External API integrations."""

from checkpointer.infrastructure.integrations.igdb_client import (
    IGDB_GAME_FIELDS,
    IGDBClient,
    build_game_type_filter,
    build_games_query,
)

__all__ = [
    "IGDB_GAME_FIELDS",
    "IGDBClient",
    "build_game_type_filter",
    "build_games_query",
]
