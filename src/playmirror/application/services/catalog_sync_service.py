"""Catalog sync coordinator: staleness policy, refresh cycles and reconciliation.

Hey future me - this is THE entry point for "give me the catalog". Reads always come from the
local store; the remote provider is only asked when the local data is stale. A failed refresh
never throws past this service (callers get a result with success=False and whatever local data
exists) unless there is literally nothing local to show - that's CatalogUnavailableError.

Which refresh touches what:
- sync_collections   -> ordinary playlists (kind PLAYLIST), reconciled against the full listing
- sync_liked_songs   -> the "liked_songs" row and its tracks
- sync_saved_albums  -> "album_*" rows and their tracks, reconciled against the albums listing
- sync_tracks(id)    -> one track-set (dispatches to the two above for special ids)
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from playmirror.application.services.reconciliation import (
    ReconciliationPlan,
    SyncCycle,
    SyncPhase,
    plan_reconciliation,
)
from playmirror.application.services.remote_call import await_callback
from playmirror.application.services.single_flight import SingleFlight
from playmirror.config import Settings
from playmirror.domain.dtos import CatalogPage, CollectionDTO, TrackDTO
from playmirror.domain.entities import (
    LIKED_SONGS_ID,
    LIKED_SONGS_NAME,
    Collection,
    CollectionKind,
    Track,
    album_collection_id,
    album_id_from_collection_id,
    join_artists,
)
from playmirror.domain.exceptions import (
    AuthenticationError,
    CatalogUnavailableError,
    EntityNotFoundException,
    RemoteTimeoutError,
    ResponseParseError,
)
from playmirror.domain.ports import (
    CompletionCallback,
    IRemoteCatalogClient,
    ITokenProvider,
)
from playmirror.infrastructure.observability import LogMessages, log_operation
from playmirror.infrastructure.persistence import (
    COLLECTIONS_LOCK_KEY,
    CatalogRepository,
    LocalCatalogStore,
    ensure_utc_aware,
    tracks_lock_key,
    utc_now,
)

logger = logging.getLogger(__name__)

SOURCE = "Spotify"

ALBUMS_SCOPE = "albums"
COLLECTIONS_SCOPE = "collections"


@dataclass
class SyncResult:
    """Outcome of one refresh cycle."""

    scope: str
    success: bool = False
    phase: SyncPhase = SyncPhase.IDLE
    added: int = 0
    updated: int = 0
    removed: int = 0
    total: int = 0
    error: str | None = None


@dataclass
class AutoSyncResult[T]:
    """Local data after an optional refresh attempt.

    items always reflects local storage AFTER the attempt, successful or not.
    """

    items: list[T] = field(default_factory=list)
    refresh_attempted: bool = False
    success: bool = True
    error: str | None = None


@dataclass
class ForceSyncResult:
    """Outcome of force_sync_all: success only if every sub-refresh succeeded."""

    success: bool
    results: list[SyncResult] = field(default_factory=list)

    @property
    def failed(self) -> list[SyncResult]:
        """Sub-refreshes that failed."""
        return [result for result in self.results if not result.success]


def _dedupe[T](items: Iterable[T], key: Callable[[T], str]) -> list[T]:
    # Providers occasionally list the same id twice; first occurrence keeps its place
    seen: set[str] = set()
    unique: list[T] = []
    for item in items:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        unique.append(item)
    return unique


class CatalogSyncService:
    """Local-first catalog reads with staleness-driven refresh."""

    def __init__(
        self,
        store: LocalCatalogStore,
        catalog_client: IRemoteCatalogClient,
        token_provider: ITokenProvider,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Local catalog store (the single shared handle)
            catalog_client: Callback-style remote catalog client
            token_provider: Source of access tokens
            settings: Application settings (sync group is used)
            clock: Returns "now" as an aware UTC datetime
        """
        self._store = store
        self._client = catalog_client
        self._tokens = token_provider
        self._settings = settings.sync
        self._clock = clock
        self._staleness = timedelta(hours=self._settings.staleness_hours)
        self._flights: SingleFlight[str, SyncResult] = SingleFlight()

    # =========================================================================
    # STALENESS POLICY
    # =========================================================================

    def _is_stale(self, sync_times: Iterable[datetime | None]) -> bool:
        times = [ensure_utc_aware(t) for t in sync_times if t is not None]
        if not times:
            return True
        return self._clock() - min(times) > self._staleness

    def is_collection_list_stale(self, collections: list[Collection]) -> bool:
        """Stale if there are no rows or the oldest last_sync_time is past the interval."""
        return self._is_stale(c.last_sync_time for c in collections)

    async def is_track_set_stale(self, collection_id: str) -> bool:
        """Stale if the collection row is absent, it has no tracks, or the oldest is too old."""
        if await self._store.get_collection(collection_id) is None:
            return True
        return self._is_stale([await self._store.oldest_track_sync_time(collection_id)])

    def stale_collection_refreshes(
        self, collections: list[Collection]
    ) -> list[Callable[[], Awaitable[SyncResult]]]:
        """The refresh entry points whose rows in `collections` are stale.

        Each kind ages on its own entry point: playlists via sync_collections, the
        liked-songs row via sync_liked_songs and "album_*" rows via sync_saved_albums.
        No playlist rows at all counts as stale (first read). Liked Songs and albums
        only age once they exist locally; force_sync_all brings them in the first time.
        """
        by_kind: dict[CollectionKind, list[Collection]] = defaultdict(list)
        for collection in collections:
            by_kind[collection.kind].append(collection)

        refreshes: list[Callable[[], Awaitable[SyncResult]]] = []
        if self.is_collection_list_stale(by_kind[CollectionKind.PLAYLIST]):
            refreshes.append(self.sync_collections)
        liked = by_kind[CollectionKind.LIKED_SONGS]
        if liked and self.is_collection_list_stale(liked):
            refreshes.append(self.sync_liked_songs)
        albums = by_kind[CollectionKind.ALBUM]
        if albums and self.is_collection_list_stale(albums):
            refreshes.append(self.sync_saved_albums)
        return refreshes

    # =========================================================================
    # CALLER-FACING READS
    # =========================================================================

    async def get_collections_with_auto_sync(self) -> AutoSyncResult[Collection]:
        """All local collections, refreshing every stale kind of row first.

        Each stale kind gets exactly one refresh attempt. The read succeeds only if
        all of them did; the errors of the failed ones are joined.

        Raises:
            CatalogUnavailableError: A refresh failed and nothing is stored locally
        """
        collections = await self._store.get_collections()
        refreshes = self.stale_collection_refreshes(collections)
        if not refreshes:
            logger.debug("Collections are fresh, serving local data")
            return AutoSyncResult(items=collections)

        results = [await refresh() for refresh in refreshes]
        collections = await self._store.get_collections()
        failed = [result for result in results if not result.success]
        error = "; ".join(result.error or result.scope for result in failed) or None
        if failed and not collections:
            raise CatalogUnavailableError("collections", error)
        return AutoSyncResult(
            items=collections,
            refresh_attempted=True,
            success=not failed,
            error=error,
        )

    async def get_tracks_with_auto_sync(self, collection_id: str) -> AutoSyncResult[Track]:
        """A collection's tracks in order, refreshing them first if the set is stale.

        Raises:
            EntityNotFoundException: No such collection is stored (Liked Songs excepted,
                its row is created by its own refresh)
            CatalogUnavailableError: The refresh failed and no tracks are stored locally
        """
        collection = await self._store.get_collection(collection_id)
        if collection is None and collection_id != LIKED_SONGS_ID:
            raise EntityNotFoundException("Collection", collection_id)
        if collection is not None and not self._is_stale(
            [await self._store.oldest_track_sync_time(collection_id)]
        ):
            logger.debug(f"Tracks of {collection_id} are fresh, serving local data")
            return AutoSyncResult(items=await self._store.get_tracks(collection_id))

        result = await self.sync_tracks(collection_id)
        tracks = await self._store.get_tracks(collection_id)
        if not result.success and not tracks:
            raise CatalogUnavailableError(f"collection {collection_id}", result.error)
        return AutoSyncResult(
            items=tracks,
            refresh_attempted=True,
            success=result.success,
            error=result.error,
        )

    # =========================================================================
    # REFRESH ENTRY POINTS
    # =========================================================================

    async def sync_collections(self) -> SyncResult:
        """Refresh and reconcile ordinary playlists against the full remote listing."""
        return await self._flights.do(COLLECTIONS_SCOPE, self._sync_collections)

    async def sync_liked_songs(self) -> SyncResult:
        """Refresh the Liked Songs pseudo-collection and its tracks."""
        return await self._flights.do(LIKED_SONGS_ID, self._sync_liked_songs)

    async def sync_saved_albums(self) -> SyncResult:
        """Refresh saved albums and their tracks, reconciling only "album_*" rows."""
        return await self._flights.do(ALBUMS_SCOPE, self._sync_saved_albums)

    async def sync_tracks(self, collection_id: str) -> SyncResult:
        """Replace one collection's tracks with the remote ordering."""
        if collection_id == LIKED_SONGS_ID:
            return await self.sync_liked_songs()
        return await self._flights.do(
            tracks_lock_key(collection_id), lambda: self._sync_tracks(collection_id)
        )

    async def force_sync_all(self) -> ForceSyncResult:
        """Refresh everything, ignoring staleness.

        Runs the collections, liked songs and albums refreshes, then the track refresh of every
        playlist still present. Playlist tracks are skipped when the playlist listing itself
        failed, since the local list may be out of date.
        """
        async with log_operation(logger, "catalog.force_sync"):
            results = [
                await self.sync_collections(),
                await self.sync_liked_songs(),
                await self.sync_saved_albums(),
            ]
            if results[0].success:
                for collection in await self._store.get_collections(CollectionKind.PLAYLIST):
                    results.append(await self.sync_tracks(collection.id))

        success = all(result.success for result in results)
        if not success:
            logger.warning(
                f"Force sync finished with {sum(not r.success for r in results)} failed "
                f"of {len(results)} refreshes"
            )
        return ForceSyncResult(success=success, results=results)

    async def clear_all_data(self) -> tuple[int, int]:
        """Delete every local collection and track. Returns (collections, tracks)."""
        return await self._store.clear_all()

    # =========================================================================
    # REMOTE ACCESS
    # =========================================================================

    async def _get_token(self) -> str:
        timeout = self._settings.token_timeout_seconds
        try:
            token = await asyncio.wait_for(self._tokens.get_access_token(), timeout=timeout)
        except TimeoutError as e:
            raise RemoteTimeoutError("getAccessToken", timeout) from e
        if not token:
            logger.warning(LogMessages.auth_required(SOURCE))
            raise AuthenticationError("No access token available")
        return token

    async def _fetch_pages(
        self,
        lister: Callable[[str, str | None, CompletionCallback[CatalogPage[CollectionDTO]]], None],
        token: str,
        operation: str,
    ) -> CatalogPage[CollectionDTO]:
        """Walk every page into one. truncated carries over from the last page."""
        items: list[CollectionDTO] = []
        cursor: str | None = None
        seen_cursors: set[str] = set()
        while True:
            page = await await_callback(
                lambda callback: lister(token, cursor, callback),
                self._settings.collections_timeout_seconds,
                operation,
            )
            if page is None:
                raise ResponseParseError(f"{operation} returned no page", service=SOURCE)
            items.extend(page.items)
            if page.next_cursor is None:
                return CatalogPage(items=items, truncated=page.truncated)
            if page.next_cursor in seen_cursors:
                raise ResponseParseError(
                    f"{operation} repeated cursor {page.next_cursor}", service=SOURCE
                )
            seen_cursors.add(page.next_cursor)
            cursor = page.next_cursor

    async def _fetch_tracks(
        self,
        start: Callable[[CompletionCallback[CatalogPage[TrackDTO]]], None],
        operation: str,
    ) -> CatalogPage[TrackDTO]:
        listing = await await_callback(start, self._settings.tracks_timeout_seconds, operation)
        if listing is None:
            raise ResponseParseError(f"{operation} returned no track list", service=SOURCE)
        return listing

    # =========================================================================
    # APPLYING
    # =========================================================================

    def _build_tracks(
        self,
        collection_id: str,
        dtos: list[TrackDTO],
        known_external_ids: dict[str, str],
        now: datetime,
    ) -> list[Track]:
        # Positions are the index in the deduplicated remote order, so always 0..n-1.
        # Resolved external ids survive the replace, keyed by provider track id.
        unique = _dedupe(dtos, key=lambda dto: dto.provider_id)
        return [
            Track(
                collection_id=collection_id,
                provider_track_id=dto.provider_id,
                name=dto.name,
                artists=join_artists(dto.artist_names),
                position=position,
                external_id=known_external_ids.get(dto.provider_id),
                last_sync_time=now,
            )
            for position, dto in enumerate(unique)
        ]

    async def _replace_track_set(
        self,
        repo: CatalogRepository,
        collection_id: str,
        listing: CatalogPage[TrackDTO],
        now: datetime,
    ) -> tuple[int, int, int, int]:
        """Replace tracks inside an open transaction. Returns (added, updated, removed, total).

        A truncated listing replaces only the prefix it delivered. Stored tracks it did
        not reach are kept after it, in their old order and with their old sync time.
        """
        known = await repo.get_external_ids(collection_id)
        old_tracks = await repo.list_tracks(collection_id)
        old_ids = {track.provider_track_id for track in old_tracks}
        tracks = self._build_tracks(collection_id, listing.items, known, now)
        if not listing.is_complete:
            logger.warning(
                f"Track listing of {collection_id} was truncated, keeping the stored tail"
            )
            delivered = {track.provider_track_id for track in tracks}
            tail = [track for track in old_tracks if track.provider_track_id not in delivered]
            tracks += [
                replace(track, position=position)
                for position, track in enumerate(tail, start=len(tracks))
            ]
        new_ids = {track.provider_track_id for track in tracks}
        await repo.replace_tracks(collection_id, tracks)
        return (
            len(new_ids - old_ids),
            len(new_ids & old_ids),
            len(old_ids - new_ids),
            len(tracks),
        )

    def _reconcile_plan(
        self, local_ids: set[str], remote_ids: Iterable[str], listing: CatalogPage[Any]
    ) -> ReconciliationPlan:
        plan = plan_reconciliation(local_ids, remote_ids)
        if listing.is_complete:
            return plan
        # Ids past the cap were never seen, so absence proves nothing
        if plan.to_delete:
            logger.warning(
                f"Listing was truncated, keeping {len(plan.to_delete)} collections not seen"
            )
        return plan.without_deletes()

    def _fail(self, cycle: SyncCycle, result: SyncResult, entity: str, error: Exception) -> None:
        cycle.abort(error)
        result.success = False
        result.phase = cycle.phase
        result.error = cycle.error
        if isinstance(error, AuthenticationError):
            logger.warning(LogMessages.sync_failed(entity, SOURCE, str(error)))
        else:
            logger.error(LogMessages.sync_failed(entity, SOURCE, str(error)), exc_info=True)

    def _succeed(self, cycle: SyncCycle, result: SyncResult, entity: str) -> None:
        cycle.commit()
        result.success = True
        result.phase = cycle.phase
        logger.info(
            LogMessages.sync_completed(
                entity, added=result.added, updated=result.updated, removed=result.removed
            )
        )

    @staticmethod
    def _record_plan(result: SyncResult, plan: ReconciliationPlan, removed: int) -> None:
        result.added = len(plan.to_add)
        result.updated = len(plan.to_update)
        result.removed = removed
        result.total = plan.remote_total

    # =========================================================================
    # REFRESH CYCLES
    # =========================================================================

    async def _sync_collections(self) -> SyncResult:
        cycle = SyncCycle(COLLECTIONS_SCOPE)
        result = SyncResult(scope=COLLECTIONS_SCOPE)
        logger.info(LogMessages.sync_started("Playlists", SOURCE))
        try:
            cycle.advance(SyncPhase.FETCHING)
            token = await self._get_token()
            listing = await self._fetch_pages(
                self._client.list_collections, token, "listCollections"
            )

            cycle.advance(SyncPhase.DIFFING)
            remote: list[CollectionDTO] = []
            for dto in _dedupe(listing.items, key=lambda d: d.provider_id):
                kind = CollectionKind.from_collection_id(dto.provider_id)
                if kind is not CollectionKind.PLAYLIST:
                    logger.warning(f"Skipping playlist with reserved id {dto.provider_id!r}")
                    continue
                remote.append(dto)

            async with self._store.write_lock(COLLECTIONS_LOCK_KEY):
                async with self._store.transaction() as repo:
                    local_ids = await repo.list_collection_ids(CollectionKind.PLAYLIST)
                    plan = self._reconcile_plan(
                        local_ids, (d.provider_id for d in remote), listing
                    )

                    cycle.advance(SyncPhase.APPLYING)
                    removed = await repo.delete_collections(set(plan.to_delete))
                    now = self._clock()
                    for dto in remote:
                        await repo.upsert_collection(
                            Collection(
                                id=dto.provider_id,
                                name=dto.name,
                                description=dto.description,
                                track_count=dto.track_count,
                                image_url=dto.image_url,
                                last_sync_time=now,
                            )
                        )

            self._record_plan(result, plan, removed)
            self._succeed(cycle, result, "Playlists")
        except Exception as e:
            self._fail(cycle, result, "Playlists", e)
        return result

    async def _sync_liked_songs(self) -> SyncResult:
        cycle = SyncCycle(LIKED_SONGS_ID)
        result = SyncResult(scope=LIKED_SONGS_ID)
        logger.info(LogMessages.sync_started(LIKED_SONGS_NAME, SOURCE))
        try:
            cycle.advance(SyncPhase.FETCHING)
            token = await self._get_token()
            listing = await self._fetch_tracks(
                lambda callback: self._client.list_liked_tracks(token, callback),
                "listLikedTracks",
            )

            cycle.advance(SyncPhase.DIFFING)
            locks = [COLLECTIONS_LOCK_KEY, tracks_lock_key(LIKED_SONGS_ID)]
            async with self._store.write_locks(locks):
                async with self._store.transaction() as repo:
                    cycle.advance(SyncPhase.APPLYING)
                    now = self._clock()
                    # Row first: the tracks need their owning collection
                    await repo.upsert_collection(
                        Collection(
                            id=LIKED_SONGS_ID,
                            name=LIKED_SONGS_NAME,
                            track_count=len(_dedupe(listing.items, key=lambda d: d.provider_id)),
                            last_sync_time=now,
                        )
                    )
                    added, updated, removed, total = await self._replace_track_set(
                        repo, LIKED_SONGS_ID, listing, now
                    )

            result.added, result.updated, result.removed, result.total = (
                added,
                updated,
                removed,
                total,
            )
            self._succeed(cycle, result, LIKED_SONGS_NAME)
        except Exception as e:
            self._fail(cycle, result, LIKED_SONGS_NAME, e)
        return result

    async def _sync_saved_albums(self) -> SyncResult:
        cycle = SyncCycle(ALBUMS_SCOPE)
        result = SyncResult(scope=ALBUMS_SCOPE)
        logger.info(LogMessages.sync_started("Saved Albums", SOURCE))
        try:
            cycle.advance(SyncPhase.FETCHING)
            token = await self._get_token()
            albums_listing = await self._fetch_pages(
                self._client.list_saved_albums, token, "listSavedAlbums"
            )
            albums = _dedupe(albums_listing.items, key=lambda d: d.provider_id)
            # Every album's tracks are fetched BEFORE anything is written
            album_tracks: dict[str, CatalogPage[TrackDTO]] = {}
            for album in albums:
                album_tracks[album.provider_id] = await self._fetch_tracks(
                    lambda callback, album_id=album.provider_id: self._client.list_album_tracks(
                        token, album_id, callback
                    ),
                    "listAlbumTracks",
                )

            cycle.advance(SyncPhase.DIFFING)
            remote_ids = [album_collection_id(album.provider_id) for album in albums]
            async with self._store.transaction() as repo:
                local_ids = await repo.list_collection_ids(CollectionKind.ALBUM)
            lock_keys = [COLLECTIONS_LOCK_KEY]
            lock_keys += [tracks_lock_key(cid) for cid in set(remote_ids) | local_ids]

            async with self._store.write_locks(lock_keys):
                async with self._store.transaction() as repo:
                    # Re-read under the lock, the pre-lock read only sized the lock set
                    local_ids = await repo.list_collection_ids(CollectionKind.ALBUM)
                    plan = self._reconcile_plan(local_ids, remote_ids, albums_listing)

                    cycle.advance(SyncPhase.APPLYING)
                    removed = await repo.delete_collections(set(plan.to_delete))
                    now = self._clock()
                    for album in albums:
                        collection_id = album_collection_id(album.provider_id)
                        await repo.upsert_collection(
                            Collection(
                                id=collection_id,
                                name=album.name,
                                description=join_artists(album.artist_names) or None,
                                track_count=album.track_count,
                                image_url=album.image_url,
                                last_sync_time=now,
                            )
                        )
                        await self._replace_track_set(
                            repo, collection_id, album_tracks[album.provider_id], now
                        )

            self._record_plan(result, plan, removed)
            self._succeed(cycle, result, "Saved Albums")
        except Exception as e:
            self._fail(cycle, result, "Saved Albums", e)
        return result

    async def _sync_tracks(self, collection_id: str) -> SyncResult:
        scope = tracks_lock_key(collection_id)
        cycle = SyncCycle(scope)
        result = SyncResult(scope=scope)
        entity = f"Tracks of {collection_id}"
        logger.info(LogMessages.sync_started(entity, SOURCE))
        try:
            cycle.advance(SyncPhase.FETCHING)
            if await self._store.get_collection(collection_id) is None:
                raise EntityNotFoundException("Collection", collection_id)
            token = await self._get_token()
            if CollectionKind.from_collection_id(collection_id) is CollectionKind.ALBUM:
                album_id = album_id_from_collection_id(collection_id)
                listing = await self._fetch_tracks(
                    lambda callback: self._client.list_album_tracks(token, album_id, callback),
                    "listAlbumTracks",
                )
            else:
                listing = await self._fetch_tracks(
                    lambda callback: self._client.list_tracks(token, collection_id, callback),
                    "listTracks",
                )

            cycle.advance(SyncPhase.DIFFING)
            async with self._store.write_lock(scope):
                async with self._store.transaction() as repo:
                    cycle.advance(SyncPhase.APPLYING)
                    now = self._clock()
                    added, updated, removed, total = await self._replace_track_set(
                        repo, collection_id, listing, now
                    )
                    # The collection may have been reconciled away while we were fetching
                    if not await repo.update_track_count(collection_id, total):
                        raise EntityNotFoundException("Collection", collection_id)

            result.added, result.updated, result.removed, result.total = (
                added,
                updated,
                removed,
                total,
            )
            self._succeed(cycle, result, entity)
        except Exception as e:
            self._fail(cycle, result, entity, e)
        return result
