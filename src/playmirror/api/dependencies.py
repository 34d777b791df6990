"""Dependency injection for API endpoints."""

from fastapi import Request

from playmirror.application.services import CatalogSyncService, ResolutionCache


# Hey future me, services are built ONCE in the lifespan and parked on app.state. These getters
# just hand them out - tests set app.state.* to mocks and never run the lifespan at all.
def get_sync_service(request: Request) -> CatalogSyncService:
    """Get the catalog sync coordinator from app state."""
    service: CatalogSyncService = request.app.state.sync_service
    return service


def get_resolution_cache(request: Request) -> ResolutionCache:
    """Get the resolution cache from app state."""
    cache: ResolutionCache = request.app.state.resolution_cache
    return cache
