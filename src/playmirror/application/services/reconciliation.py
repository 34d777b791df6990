"""Reconciliation of local collections against a complete remote listing.

One sync cycle moves through FETCHING -> DIFFING -> APPLYING and ends COMMITTED
or ABORTED. Nothing is written before APPLYING, and APPLYING runs inside one
store transaction (deletes first, then upserts), so an ABORTED cycle leaves no
partial writes behind.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Phase of one reconciliation cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    APPLYING = "applying"
    COMMITTED = "committed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        """True for COMMITTED and ABORTED."""
        return self in (SyncPhase.COMMITTED, SyncPhase.ABORTED)


_TRANSITIONS: dict[SyncPhase, set[SyncPhase]] = {
    SyncPhase.IDLE: {SyncPhase.FETCHING, SyncPhase.ABORTED},
    SyncPhase.FETCHING: {SyncPhase.DIFFING, SyncPhase.ABORTED},
    SyncPhase.DIFFING: {SyncPhase.APPLYING, SyncPhase.ABORTED},
    SyncPhase.APPLYING: {SyncPhase.COMMITTED, SyncPhase.ABORTED},
    SyncPhase.COMMITTED: set(),
    SyncPhase.ABORTED: set(),
}


@dataclass(frozen=True)
class ReconciliationPlan:
    """Set delta between the local and remote id sets of one scope."""

    to_add: frozenset[str] = field(default_factory=frozenset)
    to_update: frozenset[str] = field(default_factory=frozenset)
    to_delete: frozenset[str] = field(default_factory=frozenset)

    @property
    def remote_total(self) -> int:
        """Number of ids that exist remotely."""
        return len(self.to_add) + len(self.to_update)

    @property
    def is_noop(self) -> bool:
        """True if nothing is added or deleted (updates still bump metadata)."""
        return not self.to_add and not self.to_delete

    def without_deletes(self) -> "ReconciliationPlan":
        """Same plan minus the deletes, for listings that are known to be incomplete."""
        return ReconciliationPlan(to_add=self.to_add, to_update=self.to_update)


# Hey future me - local_ids must already be SCOPED by the caller! Feed it every collection id in
# the store and an album sync would happily delete all your playlists. The coordinator passes only
# playlist-kind ids for the playlist listing and only "album_*" ids for the albums listing.
def plan_reconciliation(
    local_ids: Iterable[str], remote_ids: Iterable[str]
) -> ReconciliationPlan:
    """Diff local ids against the complete remote listing.

    Args:
        local_ids: Ids currently stored for this scope
        remote_ids: Ids in the complete remote listing for this scope

    Returns:
        Plan with ids to add (remote only), update (both) and delete (local only)
    """
    local = set(local_ids)
    remote = set(remote_ids)
    return ReconciliationPlan(
        to_add=frozenset(remote - local),
        to_update=frozenset(remote & local),
        to_delete=frozenset(local - remote),
    )


class InvalidPhaseTransition(RuntimeError):
    """A sync cycle tried to skip or repeat a phase."""


class SyncCycle:
    """Phase tracker for one reconciliation cycle of one scope."""

    def __init__(self, scope: str) -> None:
        """Initialize a cycle in IDLE."""
        self.scope = scope
        self.phase = SyncPhase.IDLE
        self.error: str | None = None

    def advance(self, phase: SyncPhase) -> None:
        """Move to the next phase.

        Raises:
            InvalidPhaseTransition: If the move is not allowed from the current phase
        """
        if phase not in _TRANSITIONS[self.phase]:
            raise InvalidPhaseTransition(
                f"{self.scope}: cannot go from {self.phase.value} to {phase.value}"
            )
        logger.debug(f"Sync cycle {self.scope}: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def commit(self) -> None:
        """Mark all writes as applied."""
        self.advance(SyncPhase.COMMITTED)

    def abort(self, error: BaseException | str) -> None:
        """Mark the cycle failed. A no-op once the cycle already ended."""
        if self.phase.is_terminal:
            return
        self.error = str(error) or type(error).__name__
        self.advance(SyncPhase.ABORTED)
