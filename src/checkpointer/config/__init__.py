"""Configuration module for Checkpointer."""

from .settings import (
    CacheSettings,
    DatabaseSettings,
    IGDBSettings,
    ObservabilitySettings,
    Settings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "CacheSettings",
    "DatabaseSettings",
    "IGDBSettings",
    "ObservabilitySettings",
    "Settings",
    "SyncSettings",
    "get_settings",
]
