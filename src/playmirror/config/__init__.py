"""Configuration module for PlayMirror."""

from .settings import (
    DatabaseSettings,
    ObservabilitySettings,
    ResolverSettings,
    Settings,
    SpotifySettings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "DatabaseSettings",
    "SyncSettings",
    "SpotifySettings",
    "ResolverSettings",
    "ObservabilitySettings",
    "get_settings",
]
