"""Tests for catalog entities, DTOs and id helpers."""

import pytest

from playmirror.domain.dtos import CatalogPage, CollectionDTO, TrackDTO
from playmirror.domain.entities import (
    LIKED_SONGS_ID,
    Collection,
    CollectionKind,
    ResolutionProgress,
    Track,
    album_collection_id,
    album_id_from_collection_id,
    join_artists,
    split_artists,
)
from playmirror.domain.exceptions import ValidationError


class TestCollectionIds:
    """Tests for reserved ids and the album namespace."""

    def test_kind_from_collection_id(self) -> None:
        """Kind is derived from the id alone."""
        assert CollectionKind.from_collection_id(LIKED_SONGS_ID) == CollectionKind.LIKED_SONGS
        assert CollectionKind.from_collection_id("album_123") == CollectionKind.ALBUM
        assert CollectionKind.from_collection_id("37i9dQZF1DX") == CollectionKind.PLAYLIST

    def test_album_id_namespace(self) -> None:
        """Album ids are prefixed on the way in and stripped on the way out."""
        cid = album_collection_id("4aawyAB9vmqN3uQ7FjRGTy")
        assert cid == "album_4aawyAB9vmqN3uQ7FjRGTy"
        assert album_id_from_collection_id(cid) == "4aawyAB9vmqN3uQ7FjRGTy"

    def test_album_id_from_non_album_raises(self) -> None:
        """Stripping the prefix from a playlist id is a programming error."""
        with pytest.raises(ValueError):
            album_id_from_collection_id("playlist1")


class TestArtists:
    """Tests for the denormalized artist string."""

    def test_join_preserves_order(self) -> None:
        assert join_artists(["Daft Punk", "Pharrell Williams"]) == "Daft Punk, Pharrell Williams"

    def test_join_skips_empty_names(self) -> None:
        assert join_artists(["", "Nile Rodgers", ""]) == "Nile Rodgers"

    def test_split_inverts_join(self) -> None:
        assert split_artists("A, B") == ["A", "B"]
        assert split_artists("") == []


class TestCollection:
    """Tests for the Collection entity."""

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            Collection(id="  ", name="Nope")

    def test_kind_property(self) -> None:
        assert Collection(id="album_x", name="X").kind == CollectionKind.ALBUM
        assert Collection(id="pl", name="P").kind == CollectionKind.PLAYLIST


class TestTrack:
    """Tests for the Track entity."""

    def test_row_id_is_composite(self) -> None:
        track = Track(collection_id="A", provider_track_id="t1", name="Song")
        assert track.row_id == "A_t1"

    def test_is_resolved_requires_non_empty_id(self) -> None:
        track = Track(collection_id="A", provider_track_id="t1", name="Song")
        assert not track.is_resolved
        track.external_id = ""
        assert not track.is_resolved
        track.external_id = "dQw4w9WgXcQ"
        assert track.is_resolved

    def test_lookup_query_is_title_then_artists(self) -> None:
        track = Track(
            collection_id="A",
            provider_track_id="t1",
            name="Get Lucky",
            artists="Daft Punk, Pharrell Williams",
        )
        assert track.lookup_query() == "Get Lucky Daft Punk, Pharrell Williams"
        assert track.artist_names == ["Daft Punk", "Pharrell Williams"]

    def test_lookup_query_without_artists(self) -> None:
        track = Track(collection_id="A", provider_track_id="t1", name="Untitled")
        assert track.lookup_query() == "Untitled"


class TestResolutionProgress:
    """Tests for the progress value object."""

    @pytest.mark.parametrize(
        ("total", "resolved", "status", "ratio"),
        [
            (0, 0, "empty", 0.0),
            (4, 0, "pending", 0.0),
            (4, 1, "1/4", 0.25),
            (4, 4, "complete", 1.0),
        ],
    )
    def test_status_and_ratio(self, total: int, resolved: int, status: str, ratio: float) -> None:
        progress = ResolutionProgress(collection_id="A", total=total, resolved=resolved)
        assert progress.status == status
        assert progress.ratio == ratio


class TestDTOs:
    """Tests for remote DTO validation."""

    def test_collection_dto_requires_provider_id(self) -> None:
        with pytest.raises(ValidationError):
            CollectionDTO(provider_id="", name="x")

    def test_track_dto_requires_provider_id(self) -> None:
        with pytest.raises(ValidationError):
            TrackDTO(provider_id="", name="x")

    def test_catalog_page_is_last(self) -> None:
        assert CatalogPage(items=[], next_cursor=None).is_last
        assert not CatalogPage(items=[], next_cursor="50").is_last
