"""Domain entities for the mirrored catalog."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

# Reserved collection ids. "liked_songs" is a pseudo-collection (the provider has no playlist
# for it), saved albums are namespaced so they can never collide with a playlist id.
LIKED_SONGS_ID = "liked_songs"
LIKED_SONGS_NAME = "Liked Songs"
ALBUM_PREFIX = "album_"

ARTIST_SEPARATOR = ", "


class CollectionKind(str, Enum):
    """What a collection row mirrors on the remote side."""

    PLAYLIST = "playlist"
    LIKED_SONGS = "liked_songs"
    ALBUM = "album"

    @classmethod
    def from_collection_id(cls, collection_id: str) -> "CollectionKind":
        """Derive the kind from a collection id."""
        if collection_id == LIKED_SONGS_ID:
            return cls.LIKED_SONGS
        if collection_id.startswith(ALBUM_PREFIX):
            return cls.ALBUM
        return cls.PLAYLIST


def album_collection_id(album_id: str) -> str:
    """Namespace a provider album id as a collection id."""
    return f"{ALBUM_PREFIX}{album_id}"


def album_id_from_collection_id(collection_id: str) -> str:
    """Strip the album namespace from a collection id."""
    if not collection_id.startswith(ALBUM_PREFIX):
        raise ValueError(f"Not an album collection id: {collection_id}")
    return collection_id[len(ALBUM_PREFIX) :]


def join_artists(artist_names: list[str]) -> str:
    """Denormalize an ordered artist list into its stored form."""
    return ARTIST_SEPARATOR.join(name for name in artist_names if name)


def split_artists(artists: str) -> list[str]:
    """Inverse of join_artists."""
    if not artists:
        return []
    return artists.split(ARTIST_SEPARATOR)


# Listen, Collection is the local mirror of ONE remote grouping - a playlist, Liked Songs, or a
# saved album. last_sync_time is only ever written after a verified successful refresh, never
# optimistically! track_count is what the remote side declared, not len(tracks).
@dataclass
class Collection:
    """A mirrored playlist, the Liked Songs pseudo-collection, or a saved album."""

    id: str
    name: str
    description: str | None = None
    track_count: int = 0
    image_url: str | None = None
    last_sync_time: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate collection data."""
        if not self.id or not self.id.strip():
            raise ValueError("Collection id cannot be empty")

    @property
    def kind(self) -> CollectionKind:
        """Kind derived from the id namespace."""
        return CollectionKind.from_collection_id(self.id)


# Hey future me - the identity is (collection_id, provider_track_id), NOT the provider track id
# alone. The same song in two playlists is two rows with independent resolution state. position
# is the zero-based rank and defines playback order; after a refresh it is always 0..n-1.
@dataclass
class Track:
    """One occurrence of a catalog track inside a collection."""

    collection_id: str
    provider_track_id: str
    name: str
    artists: str = ""
    position: int = 0
    external_id: str | None = None
    last_sync_time: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def row_id(self) -> str:
        """Flat composite id, handy for logs and URLs."""
        return f"{self.collection_id}_{self.provider_track_id}"

    @property
    def artist_names(self) -> list[str]:
        """Artist names in their original order."""
        return split_artists(self.artists)

    @property
    def is_resolved(self) -> bool:
        """True once a non-empty external id has been stored."""
        return bool(self.external_id)

    def lookup_query(self) -> str:
        """Human-readable query for the resolver: title followed by artists."""
        return f"{self.name} {self.artists}".strip()


@dataclass(frozen=True)
class ResolutionProgress:
    """How many tracks of a collection already have a playable id."""

    collection_id: str
    total: int
    resolved: int

    @property
    def ratio(self) -> float:
        """Resolved fraction between 0.0 and 1.0."""
        if self.total == 0:
            return 0.0
        return self.resolved / self.total

    @property
    def status(self) -> str:
        """Short label for UI display."""
        if self.total == 0:
            return "empty"
        if self.resolved == self.total:
            return "complete"
        if self.resolved == 0:
            return "pending"
        return f"{self.resolved}/{self.total}"


__all__ = [
    "LIKED_SONGS_ID",
    "LIKED_SONGS_NAME",
    "ALBUM_PREFIX",
    "CollectionKind",
    "Collection",
    "Track",
    "ResolutionProgress",
    "album_collection_id",
    "album_id_from_collection_id",
    "join_artists",
    "split_artists",
]
