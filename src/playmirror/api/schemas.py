"""API schemas for the catalog endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from playmirror.application.services import (
    AutoSyncResult,
    BatchResolveResult,
    ForceSyncResult,
    SyncResult,
)
from playmirror.domain.entities import Collection, ResolutionProgress, Track


class SyncStatus(BaseModel):
    """Whether this read refreshed from the remote side, and how it went."""

    refresh_attempted: bool = Field(..., description="A refresh ran before answering")
    success: bool = Field(..., description="False if the refresh failed (data may be stale)")
    error: str | None = Field(default=None, description="Failure reason")

    @classmethod
    def from_result(cls, result: AutoSyncResult) -> "SyncStatus":
        """Build from an auto-sync result."""
        return cls(
            refresh_attempted=result.refresh_attempted,
            success=result.success,
            error=result.error,
        )


class CollectionResponse(BaseModel):
    """A mirrored collection."""

    id: str
    kind: str
    name: str
    description: str | None = None
    track_count: int
    image_url: str | None = None
    last_sync_time: datetime

    @classmethod
    def from_entity(cls, collection: Collection) -> "CollectionResponse":
        """Build from a domain entity."""
        return cls(
            id=collection.id,
            kind=collection.kind.value,
            name=collection.name,
            description=collection.description,
            track_count=collection.track_count,
            image_url=collection.image_url,
            last_sync_time=collection.last_sync_time,
        )


class TrackResponse(BaseModel):
    """A track occurrence within a collection."""

    collection_id: str
    provider_track_id: str
    name: str
    artists: list[str]
    position: int
    external_id: str | None = None
    last_sync_time: datetime

    @classmethod
    def from_entity(cls, track: Track) -> "TrackResponse":
        """Build from a domain entity."""
        return cls(
            collection_id=track.collection_id,
            provider_track_id=track.provider_track_id,
            name=track.name,
            artists=track.artist_names,
            position=track.position,
            external_id=track.external_id,
            last_sync_time=track.last_sync_time,
        )


class CollectionListResponse(BaseModel):
    """Collections plus the sync status of this read."""

    items: list[CollectionResponse]
    sync: SyncStatus


class TrackListResponse(BaseModel):
    """Tracks in playback order plus the sync status of this read."""

    collection_id: str
    items: list[TrackResponse]
    sync: SyncStatus


class SyncResultResponse(BaseModel):
    """Outcome of one refresh cycle."""

    scope: str
    success: bool
    phase: str
    added: int = 0
    updated: int = 0
    removed: int = 0
    total: int = 0
    error: str | None = None

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResultResponse":
        """Build from a service result."""
        return cls(
            scope=result.scope,
            success=result.success,
            phase=result.phase.value,
            added=result.added,
            updated=result.updated,
            removed=result.removed,
            total=result.total,
            error=result.error,
        )


class ForceSyncResponse(BaseModel):
    """Outcome of a full forced sync."""

    success: bool
    results: list[SyncResultResponse]

    @classmethod
    def from_result(cls, result: ForceSyncResult) -> "ForceSyncResponse":
        """Build from a service result."""
        return cls(
            success=result.success,
            results=[SyncResultResponse.from_result(r) for r in result.results],
        )


class ResolveResponse(BaseModel):
    """Resolved external playable-stream id (null when nothing matched)."""

    collection_id: str
    provider_track_id: str
    external_id: str | None = None


class BatchResolveResponse(BaseModel):
    """Outcome of resolving a whole collection."""

    collection_id: str
    attempted: int
    resolved: int
    reused: int
    failed: int

    @classmethod
    def from_result(cls, result: BatchResolveResult) -> "BatchResolveResponse":
        """Build from a service result."""
        return cls(
            collection_id=result.collection_id,
            attempted=result.attempted,
            resolved=result.resolved,
            reused=result.reused,
            failed=result.failed,
        )


class ProgressResponse(BaseModel):
    """Resolution progress of a collection."""

    collection_id: str
    total: int
    resolved: int
    ratio: float
    status: str

    @classmethod
    def from_entity(cls, progress: ResolutionProgress) -> "ProgressResponse":
        """Build from a domain value."""
        return cls(
            collection_id=progress.collection_id,
            total=progress.total,
            resolved=progress.resolved,
            ratio=progress.ratio,
            status=progress.status,
        )


class ClearDataResponse(BaseModel):
    """Counts of rows removed by a reset."""

    collections_removed: int
    tracks_removed: int
