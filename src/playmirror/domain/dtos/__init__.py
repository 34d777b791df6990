"""
Data Transfer Objects returned by the remote catalog client.

Hey future me - these are "dumb data carriers" between the remote adapter and the sync
coordinator. The adapter converts raw provider JSON into these; the coordinator turns them into
entities with local ids and timestamps. Keep provider-specific parsing OUT of the services.

Flow: Provider JSON -> DTO -> CatalogSyncService -> LocalCatalogStore -> Entity
"""

from dataclasses import dataclass, field

from playmirror.domain.exceptions import ValidationError


@dataclass
class CollectionDTO:
    """A playlist or saved album as listed by the provider (raw provider id)."""

    provider_id: str
    name: str
    description: str | None = None
    next_cursor: str | None = None
    # Set when the client stopped at its pagination cap while the provider still had more.
    # A truncated listing is never complete, so it must not drive deletes.
    truncated: bool = False
    track_count: int = 0
    image_url: str | None = None
    # Only set for albums - used as the collection description locally
    artist_names: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.provider_id:
            raise ValidationError("CollectionDTO requires a provider_id")


@dataclass
class TrackDTO:
    """A track as listed by the provider, in remote order."""

    provider_id: str
    name: str
    artist_names: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.provider_id:
            raise ValidationError("TrackDTO requires a provider_id")


# Listen, next_cursor is None ONLY on the last page. The coordinator treats a listing as
# complete when it sees that, and not before - a half-fetched listing must never drive deletes.
# truncated=True means the client stopped at its offset cap while the provider still had more:
# no further pages will come, but the listing is NOT complete either.
@dataclass
class CatalogPage[T]:
    """One page of a paginated remote listing (or a whole track listing)."""

    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None
    truncated: bool = False

    @property
    def is_last(self) -> bool:
        """True if no further pages will be delivered."""
        return self.next_cursor is None

    @property
    def is_complete(self) -> bool:
        """True if this is the last page AND the provider signalled end-of-pages."""
        return self.next_cursor is None and not self.truncated


__all__ = ["CollectionDTO", "TrackDTO", "CatalogPage"]
