"""Tests for the resolution cache."""

import pytest
import pytest_asyncio
from conftest import FakeResolver

from playmirror.application.services import ResolutionCache
from playmirror.config import Settings
from playmirror.domain.entities import Collection, Track
from playmirror.domain.exceptions import EntityNotFoundException
from playmirror.infrastructure.persistence import LocalCatalogStore


async def _seed(store: LocalCatalogStore, collection_id: str, track_ids: list[str]) -> None:
    async with store.transaction() as repo:
        await repo.upsert_collection(Collection(id=collection_id, name=collection_id))
        await repo.replace_tracks(
            collection_id,
            [
                Track(
                    collection_id=collection_id,
                    provider_track_id=ptid,
                    name=f"Song {ptid}",
                    artists="Artist",
                    position=position,
                )
                for position, ptid in enumerate(track_ids)
            ],
        )


@pytest_asyncio.fixture
async def seeded_store(store: LocalCatalogStore) -> LocalCatalogStore:
    """Store with playlist A holding tracks t1..t3."""
    await _seed(store, "A", ["t1", "t2", "t3"])
    return store


class TestResolve:
    """Tests for single-track resolution."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        """A miss asks the resolver once and stores the answer; the next call is local."""
        resolver.answers["Song t1 Artist"] = "XYZ123"
        cache = ResolutionCache(seeded_store, resolver, settings)
        track = await seeded_store.get_track("A", "t1")
        assert track is not None

        assert await cache.resolve(track) == "XYZ123"
        assert await cache.resolve_by_key("A", "t1") == "XYZ123"

        assert resolver.queries == ["Song t1 Artist"]
        stored = await seeded_store.get_track("A", "t1")
        assert stored is not None
        assert stored.external_id == "XYZ123"

    @pytest.mark.asyncio
    async def test_stored_id_needs_no_resolver(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        await seeded_store.set_external_id("A", "t2", "abcdefghijk")
        cache = ResolutionCache(seeded_store, resolver, settings)

        assert await cache.resolve_by_key("A", "t2") == "abcdefghijk"
        assert resolver.queries == []

    @pytest.mark.asyncio
    async def test_no_match_is_not_cached(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        """Without negative caching every call retries the resolver."""
        cache = ResolutionCache(seeded_store, resolver, settings)

        assert await cache.resolve_by_key("A", "t3") is None
        assert await cache.resolve_by_key("A", "t3") is None

        assert len(resolver.queries) == 2
        stored = await seeded_store.get_track("A", "t3")
        assert stored is not None
        assert stored.external_id is None

    @pytest.mark.asyncio
    async def test_blank_answer_is_a_miss(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        resolver.answers["Song t1 Artist"] = "   "
        cache = ResolutionCache(seeded_store, resolver, settings)

        assert await cache.resolve_by_key("A", "t1") is None
        progress = await seeded_store.get_progress("A")
        assert progress.resolved == 0

    @pytest.mark.asyncio
    async def test_resolver_error_is_a_miss(
        self, seeded_store: LocalCatalogStore, settings: Settings
    ) -> None:
        resolver = FakeResolver(error=ConnectionError("resolver down"))
        cache = ResolutionCache(seeded_store, resolver, settings)

        assert await cache.resolve_by_key("A", "t1") is None
        assert resolver.queries == ["Song t1 Artist"]

    @pytest.mark.asyncio
    async def test_reuses_id_from_other_collection(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        """The same provider track in another playlist adopts the known id without a lookup."""
        await _seed(seeded_store, "B", ["t1"])
        await seeded_store.set_external_id("A", "t1", "XYZ123")
        cache = ResolutionCache(seeded_store, resolver, settings)

        assert await cache.resolve_by_key("B", "t1") == "XYZ123"

        assert resolver.queries == []
        stored = await seeded_store.get_track("B", "t1")
        assert stored is not None
        assert stored.external_id == "XYZ123"

    @pytest.mark.asyncio
    async def test_unknown_track_raises(self, resolution_cache: ResolutionCache) -> None:
        with pytest.raises(EntityNotFoundException) as exc_info:
            await resolution_cache.resolve_by_key("A", "missing")

        assert exc_info.value.entity_type == "Track"

    @pytest.mark.asyncio
    async def test_track_removed_meanwhile_still_returns_id(
        self, store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        """A track object whose row is gone still gets an answer, nothing is persisted."""
        resolver.answers["Ghost Artist"] = "XYZ123"
        cache = ResolutionCache(store, resolver, settings)
        ghost = Track(collection_id="A", provider_track_id="g1", name="Ghost", artists="Artist")

        assert await cache.resolve(ghost) == "XYZ123"
        assert await store.get_track("A", "g1") is None


class TestResolveCollection:
    """Tests for batch resolution and progress."""

    @pytest.mark.asyncio
    async def test_resolves_unresolved_tracks_in_order(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        await seeded_store.set_external_id("A", "t2", "already0000")
        resolver.answers = {"Song t1 Artist": "first000001"}
        cache = ResolutionCache(seeded_store, resolver, settings)

        result = await cache.resolve_collection("A")

        assert resolver.queries == ["Song t1 Artist", "Song t3 Artist"]
        assert (result.attempted, result.resolved, result.reused, result.failed) == (2, 1, 0, 1)

        progress = await cache.get_progress("A")
        assert (progress.total, progress.resolved) == (3, 2)
        assert progress.status == "2/3"

    @pytest.mark.asyncio
    async def test_reuse_counts_separately(
        self, seeded_store: LocalCatalogStore, resolver: FakeResolver, settings: Settings
    ) -> None:
        await _seed(seeded_store, "B", ["t1", "t9"])
        await seeded_store.set_external_id("A", "t1", "XYZ123")
        cache = ResolutionCache(seeded_store, resolver, settings)

        result = await cache.resolve_collection("B")

        assert result.reused == 1
        assert resolver.queries == ["Song t9 Artist"]

    @pytest.mark.asyncio
    async def test_empty_collection(self, resolution_cache: ResolutionCache) -> None:
        result = await resolution_cache.resolve_collection("nothing")

        assert result.attempted == 0
        progress = await resolution_cache.get_progress("nothing")
        assert progress.status == "empty"
