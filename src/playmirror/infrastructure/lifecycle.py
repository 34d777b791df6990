"""Application lifecycle: build the object graph at startup, tear it down at shutdown."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from playmirror.application.services import CatalogSyncService, ResolutionCache
from playmirror.config import Settings, get_settings
from playmirror.domain.exceptions import ConfigurationError
from playmirror.infrastructure.integrations import (
    HttpResolverClient,
    SpotifyCatalogClient,
    StaticTokenProvider,
)
from playmirror.infrastructure.observability import configure_logging
from playmirror.infrastructure.persistence import Database, LocalCatalogStore

logger = logging.getLogger(__name__)


# Hey future me, this validates the SQLite path BEFORE the engine exists. SQLite needs to create
# -journal/-wal files next to the .db file, so the directory must be writable. We don't create
# the .db file itself - SQLite does that properly on first connect.
def _validate_sqlite_path(settings: Settings) -> None:
    """Ensure the SQLite database directory exists and is writable."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update DATABASE__URL or adjust directory permissions."
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


# Everything before `yield` runs at startup, everything after at shutdown. There is exactly ONE
# Database/LocalCatalogStore per process and it's handed to the services here - routes reach it
# through app.state, never through a global.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    _validate_sqlite_path(settings)
    db = Database(settings)
    catalog_client = SpotifyCatalogClient(settings.spotify, settings.sync)
    resolver = HttpResolverClient(settings.resolver)
    try:
        await db.create_tables()
        store = LocalCatalogStore(db)
        app.state.db = db
        app.state.store = store
        app.state.sync_service = CatalogSyncService(
            store=store,
            catalog_client=catalog_client,
            token_provider=StaticTokenProvider(settings.spotify),
            settings=settings,
        )
        app.state.resolution_cache = ResolutionCache(store, resolver, settings)
        logger.info("Database initialized: %s", settings.database.url)

        yield
    finally:
        logger.info("Shutting down application")
        await catalog_client.close()
        resolver.close()
        await db.close()
        logger.info("Database connection closed")
