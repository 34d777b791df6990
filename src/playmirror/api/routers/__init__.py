"""API router initialization."""

from fastapi import APIRouter

from playmirror.api.routers import catalog

# Mounted at /api in main.py, so catalog endpoints live under /api/catalog/...
api_router = APIRouter()
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])

__all__ = ["api_router"]
