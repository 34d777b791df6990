"""Get-or-fetch mapping from catalog tracks to external playable-stream ids."""

import asyncio
import logging
from dataclasses import dataclass

from playmirror.config import Settings
from playmirror.domain.entities import ResolutionProgress, Track
from playmirror.domain.exceptions import EntityNotFoundException
from playmirror.domain.ports import IResolverClient
from playmirror.infrastructure.observability import LogMessages
from playmirror.infrastructure.persistence import LocalCatalogStore

logger = logging.getLogger(__name__)


@dataclass
class BatchResolveResult:
    """Outcome of resolving a whole collection."""

    collection_id: str
    attempted: int = 0
    resolved: int = 0
    reused: int = 0
    failed: int = 0


# Hey future me - the order of checks in resolve() matters:
#   1. the track's own stored external id  -> return it, zero remote calls (the hot path!)
#   2. same provider track already resolved in ANOTHER collection -> adopt it, still zero calls
#   3. ask the resolver once; persist ONLY a non-empty answer
# There is deliberately no negative caching. A miss is not remembered, so the next call retries.
# Two concurrent misses on the same track both hit the resolver and both write; the write is a
# single-column UPDATE, so the last one wins and nothing gets corrupted.
class ResolutionCache:
    """Resolves catalog tracks to playable-stream ids, caching hits in the local store."""

    def __init__(
        self,
        store: LocalCatalogStore,
        resolver: IResolverClient,
        settings: Settings,
    ) -> None:
        """Initialize cache.

        Args:
            store: Local catalog store holding the cached ids
            resolver: Synchronous resolver client, called off the event loop
            settings: Application settings (sync.resolve_delay_seconds is used)
        """
        self._store = store
        self._resolver = resolver
        self._delay = settings.sync.resolve_delay_seconds

    async def resolve(self, track: Track) -> str | None:
        """Return the external id for a track, looking it up on a miss.

        Args:
            track: Track to resolve (its stored row is consulted too)

        Returns:
            The external playable-stream id, or None if nothing matched
        """
        if track.external_id:
            return track.external_id

        stored = await self._store.get_track(track.collection_id, track.provider_track_id)
        if stored is not None and stored.external_id:
            logger.debug(f"Resolution hit for {stored.row_id}")
            return stored.external_id

        reused = await self._store.find_external_id(track.provider_track_id)
        if reused:
            logger.debug(f"Reusing external id of {track.provider_track_id} for {track.row_id}")
            await self._persist(track, reused)
            return reused

        return await self._lookup_and_store(track)

    async def resolve_by_key(self, collection_id: str, provider_track_id: str) -> str | None:
        """Resolve a stored track addressed by its composite key.

        Raises:
            EntityNotFoundException: No such track row
        """
        track = await self._store.get_track(collection_id, provider_track_id)
        if track is None:
            raise EntityNotFoundException("Track", f"{collection_id}/{provider_track_id}")
        return await self.resolve(track)

    async def resolve_collection(self, collection_id: str) -> BatchResolveResult:
        """Resolve every unresolved track of a collection, in playback order.

        Remote lookups are spaced by the configured delay. Cancel the awaiting
        task to stop early; ids found so far stay stored.
        """
        result = BatchResolveResult(collection_id=collection_id)
        pending = [t for t in await self._store.get_tracks(collection_id) if not t.is_resolved]
        logger.info(f"Resolving {len(pending)} unresolved tracks of {collection_id}")

        remote_calls = 0
        for index, track in enumerate(pending, start=1):
            result.attempted += 1
            reused = await self._store.find_external_id(track.provider_track_id)
            if reused:
                await self._persist(track, reused)
                result.reused += 1
                continue

            if remote_calls and self._delay:
                await asyncio.sleep(self._delay)
            remote_calls += 1
            logger.debug(f"Resolving {track.lookup_query()!r} ({index}/{len(pending)})")
            if await self._lookup_and_store(track):
                result.resolved += 1
            else:
                result.failed += 1

        logger.info(
            f"Resolution of {collection_id} done: {result.resolved} resolved, "
            f"{result.reused} reused, {result.failed} without match"
        )
        return result

    async def get_progress(self, collection_id: str) -> ResolutionProgress:
        """How many tracks of a collection have an external id."""
        return await self._store.get_progress(collection_id)

    async def _lookup_and_store(self, track: Track) -> str | None:
        query = track.lookup_query()
        try:
            found = await asyncio.to_thread(self._resolver.lookup, query)
        except Exception as e:
            # Same as "no result": nothing is stored, the next call retries
            logger.warning(f"Resolver lookup failed for {query!r}: {e}")
            found = None

        external_id = found.strip() if found else None
        logger.info(LogMessages.resolution_miss(query, external_id))
        if external_id:
            await self._persist(track, external_id)
        return external_id or None

    async def _persist(self, track: Track, external_id: str) -> None:
        updated = await self._store.set_external_id(
            track.collection_id, track.provider_track_id, external_id
        )
        if not updated:
            # Row was replaced or deleted by a refresh in the meantime; the caller still gets the id
            logger.debug(f"Track {track.row_id} no longer stored, external id not persisted")
