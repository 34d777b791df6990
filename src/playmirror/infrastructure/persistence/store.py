"""Local catalog store: the single shared mutable resource of the sync layer."""

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncGenerator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime

from playmirror.domain.entities import Collection, CollectionKind, ResolutionProgress, Track

from .database import Database
from .repositories import CatalogRepository

logger = logging.getLogger(__name__)

COLLECTIONS_LOCK_KEY = "collections"


def tracks_lock_key(collection_id: str) -> str:
    """Lock key guarding one collection's track-set."""
    return f"tracks:{collection_id}"


# Hey future me - two reconciliation cycles interleaving their delete/insert on the same track-set
# would scramble positions. write_lock() serialises writers per key; readers never take it.
# Lock ordering rule: "collections" first, then track-set keys in sorted order (write_locks does
# that for you). Break the rule and two syncs can deadlock each other!
class LocalCatalogStore:
    """Transactional access to the local catalog plus per-key write serialisation."""

    def __init__(self, database: Database) -> None:
        """Initialize store with the process-wide database handle."""
        self._database = database
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    # Listen, _users counts holders AND waiters of a key. The lock is dropped only when that
    # reaches zero, so nobody can be parked on a lock that a newcomer no longer sees.
    @asynccontextmanager
    async def _hold(self, key: str) -> AsyncGenerator[None, None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @asynccontextmanager
    async def write_lock(self, key: str) -> AsyncGenerator[None, None]:
        """Hold the write lock for one key."""
        async with self._hold(key):
            yield

    @asynccontextmanager
    async def write_locks(self, keys: Iterable[str]) -> AsyncGenerator[None, None]:
        """Hold several write locks, acquired in a deadlock-free order."""
        unique = set(keys)
        ordered = sorted(unique - {COLLECTIONS_LOCK_KEY})
        if COLLECTIONS_LOCK_KEY in unique:
            ordered.insert(0, COLLECTIONS_LOCK_KEY)
        async with AsyncExitStack() as stack:
            for key in ordered:
                await stack.enter_async_context(self._hold(key))
            yield

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[CatalogRepository, None]:
        """One atomic unit of work. Everything commits together or nothing does."""
        async with self._database.session_scope() as session:
            yield CatalogRepository(session)

    # =========================================================================
    # READS
    # =========================================================================

    async def get_collections(self, kind: CollectionKind | None = None) -> list[Collection]:
        """All stored collections ordered by name."""
        async with self.transaction() as repo:
            return await repo.list_collections(kind)

    async def get_collection(self, collection_id: str) -> Collection | None:
        """One collection by id."""
        async with self.transaction() as repo:
            return await repo.get_collection(collection_id)

    async def get_tracks(self, collection_id: str) -> list[Track]:
        """A collection's tracks in playback order."""
        async with self.transaction() as repo:
            return await repo.list_tracks(collection_id)

    async def get_track(self, collection_id: str, provider_track_id: str) -> Track | None:
        """One track by composite key."""
        async with self.transaction() as repo:
            return await repo.get_track(collection_id, provider_track_id)

    async def oldest_track_sync_time(self, collection_id: str) -> datetime | None:
        """Oldest last_sync_time among a collection's tracks, None if it has none."""
        async with self.transaction() as repo:
            return await repo.oldest_track_sync_time(collection_id)

    async def find_external_id(self, provider_track_id: str) -> str | None:
        """An external id already resolved for this provider track anywhere in the store."""
        async with self.transaction() as repo:
            return await repo.find_external_id(provider_track_id)

    async def get_progress(self, collection_id: str) -> ResolutionProgress:
        """Resolution progress of one collection."""
        async with self.transaction() as repo:
            total, resolved = await repo.count_tracks(collection_id)
        return ResolutionProgress(collection_id=collection_id, total=total, resolved=resolved)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def set_external_id(
        self, collection_id: str, provider_track_id: str, external_id: str
    ) -> bool:
        """Persist a resolved external id onto one track row (idempotent)."""
        async with self.transaction() as repo:
            return await repo.set_external_id(collection_id, provider_track_id, external_id)

    async def clear_all(self) -> tuple[int, int]:
        """Delete all local catalog data. Returns (collections, tracks) removed."""
        async with self.write_lock(COLLECTIONS_LOCK_KEY):
            async with self.transaction() as repo:
                removed = await repo.clear_all()
        logger.info(f"Cleared local catalog: {removed[0]} collections, {removed[1]} tracks")
        return removed
