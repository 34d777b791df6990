"""Catalog endpoints: local-first reads, forced sync and track resolution."""

import logging

from fastapi import APIRouter, Depends

from playmirror.api.dependencies import get_resolution_cache, get_sync_service
from playmirror.api.schemas import (
    BatchResolveResponse,
    ClearDataResponse,
    CollectionListResponse,
    CollectionResponse,
    ForceSyncResponse,
    ProgressResponse,
    ResolveResponse,
    SyncStatus,
    TrackListResponse,
    TrackResponse,
)
from playmirror.application.services import CatalogSyncService, ResolutionCache

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


# Hey future me - these two reads are the "with auto-sync" contract: they may block on a refresh
# when local data is stale, and a failed refresh still answers 200 with sync.success=false and
# whatever is stored. Only "refresh failed AND nothing stored" becomes a 503 (exception handler).
@router.get("/collections", response_model=CollectionListResponse)
async def list_collections(
    sync_service: CatalogSyncService = Depends(get_sync_service),
) -> CollectionListResponse:
    """List collections, refreshing from the remote catalog first if stale."""
    result = await sync_service.get_collections_with_auto_sync()
    return CollectionListResponse(
        items=[CollectionResponse.from_entity(c) for c in result.items],
        sync=SyncStatus.from_result(result),
    )


@router.get("/collections/{collection_id}/tracks", response_model=TrackListResponse)
async def list_tracks(
    collection_id: str,
    sync_service: CatalogSyncService = Depends(get_sync_service),
) -> TrackListResponse:
    """List a collection's tracks in playback order, refreshing first if stale."""
    result = await sync_service.get_tracks_with_auto_sync(collection_id)
    return TrackListResponse(
        collection_id=collection_id,
        items=[TrackResponse.from_entity(t) for t in result.items],
        sync=SyncStatus.from_result(result),
    )


@router.post("/sync", response_model=ForceSyncResponse)
async def force_sync(
    sync_service: CatalogSyncService = Depends(get_sync_service),
) -> ForceSyncResponse:
    """Refresh everything now, ignoring staleness."""
    result = await sync_service.force_sync_all()
    return ForceSyncResponse.from_result(result)


@router.post(
    "/collections/{collection_id}/tracks/{provider_track_id}/resolve",
    response_model=ResolveResponse,
)
async def resolve_track(
    collection_id: str,
    provider_track_id: str,
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> ResolveResponse:
    """Get (or look up and cache) the playable-stream id of one track."""
    external_id = await cache.resolve_by_key(collection_id, provider_track_id)
    return ResolveResponse(
        collection_id=collection_id,
        provider_track_id=provider_track_id,
        external_id=external_id,
    )


@router.post("/collections/{collection_id}/resolve", response_model=BatchResolveResponse)
async def resolve_collection(
    collection_id: str,
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> BatchResolveResponse:
    """Resolve every unresolved track of a collection (paced, may take a while)."""
    result = await cache.resolve_collection(collection_id)
    return BatchResolveResponse.from_result(result)


@router.get("/collections/{collection_id}/progress", response_model=ProgressResponse)
async def resolution_progress(
    collection_id: str,
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> ProgressResponse:
    """How many tracks of a collection already have a playable-stream id."""
    progress = await cache.get_progress(collection_id)
    return ProgressResponse.from_entity(progress)


@router.delete("/data", response_model=ClearDataResponse)
async def clear_data(
    sync_service: CatalogSyncService = Depends(get_sync_service),
) -> ClearDataResponse:
    """Delete all locally mirrored collections and tracks."""
    collections_removed, tracks_removed = await sync_service.clear_all_data()
    logger.info(f"Local catalog cleared via API ({collections_removed} collections)")
    return ClearDataResponse(
        collections_removed=collections_removed,
        tracks_removed=tracks_removed,
    )
