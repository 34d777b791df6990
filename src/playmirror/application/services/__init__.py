"""Application services: sync coordination and track resolution."""

from playmirror.application.services.catalog_sync_service import (
    AutoSyncResult,
    CatalogSyncService,
    ForceSyncResult,
    SyncResult,
)
from playmirror.application.services.reconciliation import (
    ReconciliationPlan,
    SyncCycle,
    SyncPhase,
    plan_reconciliation,
)
from playmirror.application.services.remote_call import await_callback
from playmirror.application.services.resolution_cache import (
    BatchResolveResult,
    ResolutionCache,
)
from playmirror.application.services.single_flight import SingleFlight

__all__ = [
    "AutoSyncResult",
    "BatchResolveResult",
    "CatalogSyncService",
    "ForceSyncResult",
    "ReconciliationPlan",
    "ResolutionCache",
    "SingleFlight",
    "SyncCycle",
    "SyncPhase",
    "SyncResult",
    "await_callback",
    "plan_reconciliation",
]
