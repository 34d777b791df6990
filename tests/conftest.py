"""Shared fixtures: temp SQLite store, fake remote catalog, fake resolver, controllable clock."""

import asyncio
from collections import Counter
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio

from playmirror.application.services import CatalogSyncService, ResolutionCache
from playmirror.config import DatabaseSettings, Settings, SyncSettings
from playmirror.domain.dtos import CatalogPage, CollectionDTO, TrackDTO
from playmirror.domain.ports import (
    CompletionCallback,
    IRemoteCatalogClient,
    IResolverClient,
    ITokenProvider,
)
from playmirror.infrastructure.persistence import Database, LocalCatalogStore


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def playlist(
    provider_id: str, name: str | None = None, track_count: int = 0
) -> CollectionDTO:
    """Build a playlist DTO."""
    return CollectionDTO(
        provider_id=provider_id,
        name=name or f"Playlist {provider_id}",
        track_count=track_count,
    )


def album(
    provider_id: str, name: str | None = None, artists: list[str] | None = None
) -> CollectionDTO:
    """Build an album DTO."""
    return CollectionDTO(
        provider_id=provider_id,
        name=name or f"Album {provider_id}",
        artist_names=artists or ["Some Artist"],
    )


def track(
    provider_id: str, name: str | None = None, artists: list[str] | None = None
) -> TrackDTO:
    """Build a track DTO."""
    return TrackDTO(
        provider_id=provider_id,
        name=name or f"Song {provider_id}",
        artist_names=artists if artists is not None else ["Artist"],
    )


@dataclass
class FakeCatalogClient(IRemoteCatalogClient):
    """In-process remote catalog that completes callbacks on a later loop iteration."""

    playlists: list[CollectionDTO] = field(default_factory=list)
    albums: list[CollectionDTO] = field(default_factory=list)
    tracks: dict[str, list[TrackDTO]] = field(default_factory=dict)
    album_tracks: dict[str, list[TrackDTO]] = field(default_factory=dict)
    liked: list[TrackDTO] = field(default_factory=list)
    page_size: int = 50
    fail_with: Exception | None = None
    never_complete: bool = False
    # Listings to report as cut short: "playlists", "albums", "liked", or a playlist/album id
    truncated: set[str] = field(default_factory=set)
    calls: Counter[str] = field(default_factory=Counter)

    def _complete[T](self, name: str, callback: CompletionCallback[T], result: T) -> None:
        self.calls[name] += 1
        if self.never_complete:
            return
        loop = asyncio.get_running_loop()
        if self.fail_with is not None:
            loop.call_soon(callback, None, self.fail_with)
        else:
            loop.call_soon(callback, result, None)

    def _page(
        self, items: list[CollectionDTO], cursor: str | None, listing: str
    ) -> CatalogPage[CollectionDTO]:
        offset = int(cursor) if cursor else 0
        end = offset + self.page_size
        next_cursor = str(end) if end < len(items) else None
        return CatalogPage(
            items=list(items[offset:end]),
            next_cursor=next_cursor,
            truncated=next_cursor is None and listing in self.truncated,
        )

    def _tracks(self, tracks: list[TrackDTO], listing: str) -> CatalogPage[TrackDTO]:
        return CatalogPage(items=list(tracks), truncated=listing in self.truncated)

    def list_collections(self, token, cursor, callback) -> None:  # type: ignore[no-untyped-def]
        page = self._page(self.playlists, cursor, "playlists")
        self._complete("list_collections", callback, page)

    def list_saved_albums(self, token, cursor, callback) -> None:  # type: ignore[no-untyped-def]
        self._complete("list_saved_albums", callback, self._page(self.albums, cursor, "albums"))

    def list_tracks(self, token, collection_id, callback) -> None:  # type: ignore[no-untyped-def]
        listing = self._tracks(self.tracks.get(collection_id, []), collection_id)
        self._complete("list_tracks", callback, listing)

    def list_liked_tracks(self, token, callback) -> None:  # type: ignore[no-untyped-def]
        self._complete("list_liked_tracks", callback, self._tracks(self.liked, "liked"))

    def list_album_tracks(self, token, album_id, callback) -> None:  # type: ignore[no-untyped-def]
        listing = self._tracks(self.album_tracks.get(album_id, []), album_id)
        self._complete("list_album_tracks", callback, listing)


class FakeTokenProvider(ITokenProvider):
    """Token provider returning a fixed token (or None)."""

    def __init__(self, token: str | None = "test-token") -> None:
        self.token = token

    async def get_access_token(self) -> str | None:
        return self.token


class FakeResolver(IResolverClient):
    """Resolver answering from a dict, recording every query."""

    def __init__(
        self, answers: dict[str, str | None] | None = None, error: Exception | None = None
    ) -> None:
        self.answers = answers or {}
        self.error = error
        self.queries: list[str] = []

    def lookup(self, query: str) -> str | None:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.answers.get(query)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, with short timeouts and no resolve delay."""
    return Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"),
        sync=SyncSettings(
            collections_timeout_seconds=2.0,
            tracks_timeout_seconds=2.0,
            token_timeout_seconds=2.0,
            resolve_delay_seconds=0.0,
        ),
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with tables created."""
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> LocalCatalogStore:
    """Local catalog store over the temp database."""
    return LocalCatalogStore(database)


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock."""
    return FakeClock()


@pytest.fixture
def catalog_client() -> FakeCatalogClient:
    """Remote catalog with three playlists and a few tracks each."""
    return FakeCatalogClient(
        playlists=[playlist("A"), playlist("B"), playlist("C")],
        tracks={
            "A": [track("a1"), track("a2")],
            "B": [track("b1")],
            "C": [track("c1"), track("c2"), track("c3")],
        },
    )


@pytest.fixture
def token_provider() -> FakeTokenProvider:
    """Token provider with a valid token."""
    return FakeTokenProvider()


@pytest.fixture
def resolver() -> FakeResolver:
    """Resolver with no answers configured."""
    return FakeResolver()


@pytest.fixture
def sync_service(
    store: LocalCatalogStore,
    catalog_client: FakeCatalogClient,
    token_provider: FakeTokenProvider,
    settings: Settings,
    clock: FakeClock,
) -> CatalogSyncService:
    """Sync coordinator wired to the fakes."""
    return CatalogSyncService(
        store=store,
        catalog_client=catalog_client,
        token_provider=token_provider,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def resolution_cache(
    store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
) -> ResolutionCache:
    """Resolution cache wired to the fake resolver."""
    return ResolutionCache(store, resolver, settings)
