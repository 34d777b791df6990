"""Spotify Web API adapter for the callback-style remote catalog port."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, cast

import httpx

from playmirror.config.settings import SpotifySettings, SyncSettings
from playmirror.domain.dtos import CatalogPage, CollectionDTO, TrackDTO
from playmirror.domain.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    ResponseParseError,
)
from playmirror.domain.ports import CompletionCallback, IRemoteCatalogClient, ITokenProvider

logger = logging.getLogger(__name__)

SERVICE = "Spotify"

# Spotify's hard page-size limits
MAX_PAGE_SIZE = 50
MAX_PLAYLIST_TRACKS_PAGE_SIZE = 100


def _image_url(obj: dict[str, Any]) -> str | None:
    images = obj.get("images") or []
    if images and isinstance(images[0], dict):
        return cast(str | None, images[0].get("url"))
    return None


def _artist_names(obj: dict[str, Any]) -> list[str]:
    return [artist["name"] for artist in obj.get("artists") or [] if artist.get("name")]


def _parse_track(obj: dict[str, Any] | None) -> TrackDTO | None:
    # Removed and local-file tracks come back as null or without an id
    if not obj or not obj.get("id"):
        return None
    return TrackDTO(
        provider_id=obj["id"],
        name=obj.get("name") or "",
        artist_names=_artist_names(obj),
    )


def _parse_playlist(obj: dict[str, Any]) -> CollectionDTO:
    # Newer API responses moved the track summary from "tracks" to "items"
    summary = obj.get("tracks") or obj.get("items") or {}
    return CollectionDTO(
        provider_id=obj["id"],
        name=obj.get("name") or "",
        description=obj.get("description") or None,
        track_count=int(summary.get("total") or 0),
        image_url=_image_url(obj),
    )


def _parse_album(obj: dict[str, Any]) -> CollectionDTO:
    return CollectionDTO(
        provider_id=obj["id"],
        name=obj.get("name") or "",
        track_count=int(obj.get("total_tracks") or 0),
        image_url=_image_url(obj),
        artist_names=_artist_names(obj),
    )


# Hey future me - this client speaks the CALLBACK contract on purpose: every list_* method returns
# immediately, runs the HTTP work in a background task and calls the callback exactly once. The
# sync coordinator bridges that with remote_call.await_callback. If you want plain coroutines, use
# the fetch_* methods directly (the tests do).
class SpotifyCatalogClient(IRemoteCatalogClient):
    """Callback-style remote catalog client backed by httpx."""

    def __init__(
        self,
        settings: SpotifySettings,
        sync_settings: SyncSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            settings: Spotify API settings
            sync_settings: Pagination limits
            http_client: Optional preconfigured client (tests inject a MockTransport)
        """
        self.settings = settings
        self._page_size = min(sync_settings.page_size, MAX_PAGE_SIZE)
        self._max_offset = sync_settings.max_offset
        self._client = http_client
        self._tasks: set[asyncio.Task[None]] = set()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._client

    async def close(self) -> None:
        """Cancel outstanding calls and close the HTTP client."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SpotifyCatalogClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _api_request(
        self, path: str, access_token: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """GET a JSON object, retrying on 429 and mapping failures to domain errors.

        Raises:
            AuthenticationError: HTTP 401/403
            ExternalServiceError: Transport failure or other HTTP error
            ResponseParseError: Body is not a JSON object
        """
        client = await self._get_client()
        url = f"{self.settings.api_base_url.rstrip('/')}{path}"
        headers = {"Authorization": f"Bearer {access_token}"}

        attempt = 0
        while True:
            try:
                response = await client.get(url, params=params, headers=headers)
            except httpx.HTTPError as e:
                raise ExternalServiceError(
                    f"{SERVICE} request failed: {e.__class__.__name__}: {e}", service=SERVICE
                ) from e

            if response.status_code == 429 and attempt < self.settings.max_retries:
                attempt += 1
                retry_after = response.headers.get("Retry-After", "1")
                wait = float(retry_after) if retry_after.isdigit() else 1.0
                logger.warning(
                    f"{SERVICE} 429 Rate Limit (attempt {attempt}/{self.settings.max_retries}): "
                    f"waiting {wait:.1f}s before retrying {path}"
                )
                await asyncio.sleep(wait)
                continue
            break

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"{SERVICE} rejected the access token (HTTP {response.status_code})"
            )
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"{SERVICE} returned HTTP {response.status_code} for {path}",
                service=SERVICE,
                http_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseParseError(
                f"{SERVICE} returned invalid JSON for {path}", service=SERVICE
            ) from e
        if not isinstance(data, dict):
            raise ResponseParseError(
                f"{SERVICE} returned a non-object for {path}", service=SERVICE
            )
        return data

    async def _fetch_page(
        self,
        path: str,
        access_token: str,
        offset: int,
        limit: int,
        parse: Callable[[dict[str, Any]], Any],
    ) -> CatalogPage[Any]:
        """Fetch and parse one offset page. The cursor is the next offset as a string."""
        data = await self._api_request(path, access_token, {"limit": limit, "offset": offset})
        try:
            raw_items = data["items"]
            items = [item for item in (parse(raw) for raw in raw_items if raw) if item is not None]
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseParseError(
                f"Malformed {SERVICE} page for {path}: {e!r}", service=SERVICE
            ) from e

        if not data.get("next"):
            return CatalogPage(items=items)
        next_offset = offset + limit
        if next_offset >= self._max_offset:
            # Provider has more but we stop here - callers must not treat this as complete
            logger.warning(
                f"{SERVICE} listing {path} truncated at offset cap {self._max_offset}"
            )
            return CatalogPage(items=items, truncated=True)
        return CatalogPage(items=items, next_cursor=str(next_offset))

    async def _fetch_all(
        self,
        path: str,
        access_token: str,
        limit: int,
        parse: Callable[[dict[str, Any]], Any],
    ) -> CatalogPage[Any]:
        """Walk every page of a listing into one page (truncated if the cap was hit)."""
        items: list[Any] = []
        cursor: str | None = "0"
        truncated = False
        while cursor is not None:
            page = await self._fetch_page(path, access_token, int(cursor), limit, parse)
            items.extend(page.items)
            cursor = page.next_cursor
            truncated = page.truncated
        return CatalogPage(items=items, truncated=truncated)

    # =========================================================================
    # COROUTINE API
    # =========================================================================

    async def fetch_collections_page(
        self, access_token: str, cursor: str | None
    ) -> CatalogPage[CollectionDTO]:
        """One page of the user's playlists."""
        return await self._fetch_page(
            "/me/playlists",
            access_token,
            int(cursor) if cursor else 0,
            self._page_size,
            _parse_playlist,
        )

    async def fetch_saved_albums_page(
        self, access_token: str, cursor: str | None
    ) -> CatalogPage[CollectionDTO]:
        """One page of the user's saved albums."""
        return await self._fetch_page(
            "/me/albums",
            access_token,
            int(cursor) if cursor else 0,
            self._page_size,
            lambda item: _parse_album(item["album"]),
        )

    async def fetch_playlist_tracks(
        self, access_token: str, playlist_id: str
    ) -> CatalogPage[TrackDTO]:
        """All tracks of a playlist in order."""
        return await self._fetch_all(
            f"/playlists/{playlist_id}/tracks",
            access_token,
            MAX_PLAYLIST_TRACKS_PAGE_SIZE,
            lambda item: _parse_track(item.get("track")),
        )

    async def fetch_liked_tracks(self, access_token: str) -> CatalogPage[TrackDTO]:
        """All liked (saved) tracks, most recently liked first."""
        return await self._fetch_all(
            "/me/tracks",
            access_token,
            self._page_size,
            lambda item: _parse_track(item.get("track")),
        )

    async def fetch_album_tracks(self, access_token: str, album_id: str) -> CatalogPage[TrackDTO]:
        """All tracks of an album in disc order."""
        return await self._fetch_all(
            f"/albums/{album_id}/tracks", access_token, self._page_size, _parse_track
        )

    # =========================================================================
    # CALLBACK API (IRemoteCatalogClient)
    # =========================================================================

    def _run[T](
        self, operation: Callable[[], Awaitable[T]], callback: CompletionCallback[T], name: str
    ) -> None:
        async def runner() -> None:
            try:
                result = await operation()
            except Exception as e:
                logger.debug(f"{name} failed: {e}")
                callback(None, e)
                return
            callback(result, None)

        task = asyncio.get_running_loop().create_task(runner(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def list_collections(
        self,
        token: str,
        cursor: str | None,
        callback: CompletionCallback[CatalogPage[CollectionDTO]],
    ) -> None:
        """List one page of playlists; result delivered via callback."""
        self._run(lambda: self.fetch_collections_page(token, cursor), callback, "listCollections")

    def list_saved_albums(
        self,
        token: str,
        cursor: str | None,
        callback: CompletionCallback[CatalogPage[CollectionDTO]],
    ) -> None:
        """List one page of saved albums; result delivered via callback."""
        self._run(lambda: self.fetch_saved_albums_page(token, cursor), callback, "listSavedAlbums")

    def list_tracks(
        self, token: str, collection_id: str, callback: CompletionCallback[CatalogPage[TrackDTO]]
    ) -> None:
        """Fetch a playlist's tracks; result delivered via callback."""
        self._run(lambda: self.fetch_playlist_tracks(token, collection_id), callback, "listTracks")

    def list_liked_tracks(
        self, token: str, callback: CompletionCallback[CatalogPage[TrackDTO]]
    ) -> None:
        """Fetch liked tracks; result delivered via callback."""
        self._run(lambda: self.fetch_liked_tracks(token), callback, "listLikedTracks")

    def list_album_tracks(
        self, token: str, album_id: str, callback: CompletionCallback[CatalogPage[TrackDTO]]
    ) -> None:
        """Fetch an album's tracks; result delivered via callback."""
        self._run(lambda: self.fetch_album_tracks(token, album_id), callback, "listAlbumTracks")


class StaticTokenProvider(ITokenProvider):
    """Token provider that hands out the configured access token as-is.

    Token refresh is not this layer's job; swap in another ITokenProvider for that.
    """

    def __init__(self, settings: SpotifySettings) -> None:
        """Initialize with Spotify settings."""
        self.settings = settings

    async def get_access_token(self) -> str | None:
        """Return the configured token, or None if unset."""
        token = self.settings.access_token.strip()
        return token or None
