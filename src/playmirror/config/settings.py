"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Local store connection settings."""

    url: str = "sqlite+aiosqlite:///./playmirror.db"
    echo: bool = False
    pool_pre_ping: bool = True
    # PostgreSQL only - SQLite ignores pooling
    pool_size: int = Field(default=5, gt=0)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, gt=0)
    pool_recycle: int = Field(default=3600, gt=0)


# Hey future me - these are the knobs for the sync coordinator. staleness_hours is THE policy:
# anything older than this gets refreshed on the next read. The timeouts are the cancellation
# boundary for a single remote call (NOT a polling ceiling - we await a future directly).
class SyncSettings(BaseModel):
    """Sync coordinator and resolution settings."""

    staleness_hours: float = Field(default=24.0, gt=0)
    collections_timeout_seconds: float = Field(default=10.0, gt=0)
    tracks_timeout_seconds: float = Field(default=10.0, gt=0)
    token_timeout_seconds: float = Field(default=3.0, gt=0)
    page_size: int = Field(default=50, gt=0, le=50)
    max_offset: int = Field(default=1000, gt=0)
    resolve_delay_seconds: float = Field(default=2.0, ge=0)


class SpotifySettings(BaseModel):
    """Remote catalog (Spotify Web API) settings."""

    api_base_url: str = "https://api.spotify.com/v1"
    access_token: str = ""
    refresh_token: str = ""
    request_timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)


class ResolverSettings(BaseModel):
    """Playable-stream resolver backend settings."""

    base_url: str = ""
    api_key: str = ""
    timeout: float = Field(default=15.0, gt=0)
    max_results: int = Field(default=50, gt=0)

    @property
    def is_configured(self) -> bool:
        """Check if both backend URL and API key are set."""
        return bool(self.base_url.strip() and self.api_key.strip())


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object.

    Nested groups are read from env vars with a double underscore,
    e.g. ``SYNC__STALENESS_HOURS=12`` or ``DATABASE__URL=...``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "playmirror"
    log_level: str = "INFO"
    debug: bool = False

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for non-file databases."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:" or path.startswith(":memory:"):
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
