"""Infrastructure persistence layer."""

from .database import Database
from .models import Base, CatalogTrackModel, CollectionModel, ensure_utc_aware, utc_now
from .repositories import CatalogRepository
from .store import COLLECTIONS_LOCK_KEY, LocalCatalogStore, tracks_lock_key

__all__ = [
    "Database",
    "Base",
    "CollectionModel",
    "CatalogTrackModel",
    "CatalogRepository",
    "LocalCatalogStore",
    "COLLECTIONS_LOCK_KEY",
    "tracks_lock_key",
    "ensure_utc_aware",
    "utc_now",
]
