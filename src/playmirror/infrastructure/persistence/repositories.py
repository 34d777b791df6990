"""Repository implementation for the mirrored catalog tables."""

from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from playmirror.domain.entities import Collection, CollectionKind, Track

from .models import CatalogTrackModel, CollectionModel, ensure_utc_aware


def _to_collection(model: CollectionModel) -> Collection:
    return Collection(
        id=model.id,
        name=model.name,
        description=model.description,
        track_count=model.track_count,
        image_url=model.image_url,
        last_sync_time=ensure_utc_aware(model.last_sync_time),
    )


def _to_track(model: CatalogTrackModel) -> Track:
    return Track(
        collection_id=model.collection_id,
        provider_track_id=model.provider_track_id,
        name=model.name,
        artists=model.artists,
        position=model.position,
        external_id=model.external_id,
        last_sync_time=ensure_utc_aware(model.last_sync_time),
    )


# Hey future me - this repository never commits! It works inside whatever session it was handed,
# so LocalCatalogStore.transaction() decides where the transaction boundary is. That's what lets a
# sync cycle do its deletes and upserts as ONE atomic unit.
class CatalogRepository:
    """SQLAlchemy access to catalog_collections and catalog_tracks."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    async def list_collections(self, kind: CollectionKind | None = None) -> list[Collection]:
        """List collections ordered by name, optionally limited to one kind."""
        stmt = select(CollectionModel).order_by(CollectionModel.name, CollectionModel.id)
        if kind is not None:
            stmt = stmt.where(CollectionModel.kind == kind.value)
        result = await self.session.execute(stmt)
        return [_to_collection(model) for model in result.scalars().all()]

    async def get_collection(self, collection_id: str) -> Collection | None:
        """Get a collection by id."""
        model = await self.session.get(CollectionModel, collection_id)
        return _to_collection(model) if model else None

    async def list_collection_ids(self, kind: CollectionKind | None = None) -> set[str]:
        """Get the ids of all stored collections, optionally of one kind."""
        stmt = select(CollectionModel.id)
        if kind is not None:
            stmt = stmt.where(CollectionModel.kind == kind.value)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def upsert_collection(self, collection: Collection) -> bool:
        """Insert or overwrite a collection row.

        Returns:
            True if the row was created, False if it already existed
        """
        model = await self.session.get(CollectionModel, collection.id)
        if model:
            model.name = collection.name
            model.description = collection.description
            model.track_count = collection.track_count
            model.image_url = collection.image_url
            model.last_sync_time = collection.last_sync_time
            return False

        self.session.add(
            CollectionModel(
                id=collection.id,
                kind=collection.kind.value,
                name=collection.name,
                description=collection.description,
                track_count=collection.track_count,
                image_url=collection.image_url,
                last_sync_time=collection.last_sync_time,
            )
        )
        # Flush so track rows inserted later in the same transaction satisfy the FK
        await self.session.flush()
        return True

    async def delete_collections(self, collection_ids: set[str]) -> int:
        """Delete collections by id. Their tracks go with them (ON DELETE CASCADE)."""
        if not collection_ids:
            return 0

        # Explicit track delete as well, so the result doesn't depend on the FK pragma
        await self.session.execute(
            delete(CatalogTrackModel).where(CatalogTrackModel.collection_id.in_(collection_ids))
        )
        result = await self.session.execute(
            delete(CollectionModel).where(CollectionModel.id.in_(collection_ids))
        )
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def update_track_count(self, collection_id: str, track_count: int) -> bool:
        """Set the declared track count. Returns False if the collection is absent."""
        result = await self.session.execute(
            update(CollectionModel)
            .where(CollectionModel.id == collection_id)
            .values(track_count=track_count)
        )
        return bool(result.rowcount)  # type: ignore[attr-defined]

    # =========================================================================
    # TRACKS
    # =========================================================================

    async def list_tracks(self, collection_id: str) -> list[Track]:
        """List a collection's tracks in playback order."""
        stmt = (
            select(CatalogTrackModel)
            .where(CatalogTrackModel.collection_id == collection_id)
            .order_by(CatalogTrackModel.position)
        )
        result = await self.session.execute(stmt)
        return [_to_track(model) for model in result.scalars().all()]

    async def get_track(self, collection_id: str, provider_track_id: str) -> Track | None:
        """Point lookup by composite key."""
        model = await self.session.get(CatalogTrackModel, (collection_id, provider_track_id))
        return _to_track(model) if model else None

    async def get_external_ids(self, collection_id: str) -> dict[str, str]:
        """Map provider_track_id -> external_id for the resolved tracks of a collection."""
        stmt = select(CatalogTrackModel.provider_track_id, CatalogTrackModel.external_id).where(
            CatalogTrackModel.collection_id == collection_id,
            CatalogTrackModel.external_id.is_not(None),
            CatalogTrackModel.external_id != "",
        )
        result = await self.session.execute(stmt)
        return {row.provider_track_id: row.external_id for row in result.all()}

    async def replace_tracks(self, collection_id: str, tracks: list[Track]) -> int:
        """Delete every track of a collection, then insert the given ones.

        Positions are written exactly as given - the caller hands over a
        contiguous 0..n-1 ordering.

        Returns:
            Number of tracks inserted
        """
        await self.delete_tracks_by_collection(collection_id)
        self.session.add_all(
            [
                CatalogTrackModel(
                    collection_id=collection_id,
                    provider_track_id=track.provider_track_id,
                    name=track.name,
                    artists=track.artists,
                    position=track.position,
                    external_id=track.external_id,
                    last_sync_time=track.last_sync_time,
                )
                for track in tracks
            ]
        )
        await self.session.flush()
        return len(tracks)

    async def delete_tracks_by_collection(self, collection_id: str) -> int:
        """Delete all tracks of one collection."""
        result = await self.session.execute(
            delete(CatalogTrackModel).where(CatalogTrackModel.collection_id == collection_id)
        )
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def delete_track(self, collection_id: str, provider_track_id: str) -> bool:
        """Delete a single track by composite key."""
        result = await self.session.execute(
            delete(CatalogTrackModel).where(
                CatalogTrackModel.collection_id == collection_id,
                CatalogTrackModel.provider_track_id == provider_track_id,
            )
        )
        return bool(result.rowcount)  # type: ignore[attr-defined]

    # Listen, this is a plain UPDATE of one column - writing the same value twice is harmless and
    # two racing writers end with the last one's value. Never touch position or name here!
    async def set_external_id(
        self, collection_id: str, provider_track_id: str, external_id: str
    ) -> bool:
        """Record a resolved external id. Returns False if the track row is gone."""
        result = await self.session.execute(
            update(CatalogTrackModel)
            .where(
                CatalogTrackModel.collection_id == collection_id,
                CatalogTrackModel.provider_track_id == provider_track_id,
            )
            .values(external_id=external_id)
        )
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def find_external_id(self, provider_track_id: str) -> str | None:
        """Find an external id already resolved for this provider track in any collection."""
        stmt = (
            select(CatalogTrackModel.external_id)
            .where(
                CatalogTrackModel.provider_track_id == provider_track_id,
                CatalogTrackModel.external_id.is_not(None),
                CatalogTrackModel.external_id != "",
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_tracks(self, collection_id: str) -> tuple[int, int]:
        """Count (total, resolved) tracks of a collection."""
        resolved = func.count(CatalogTrackModel.external_id).filter(
            CatalogTrackModel.external_id != ""
        )
        stmt = select(func.count(), resolved).where(
            CatalogTrackModel.collection_id == collection_id
        )
        row = (await self.session.execute(stmt)).one()
        return int(row[0] or 0), int(row[1] or 0)

    async def oldest_track_sync_time(self, collection_id: str) -> datetime | None:
        """Oldest last_sync_time among a collection's tracks, None if there are none."""
        stmt = select(func.min(CatalogTrackModel.last_sync_time)).where(
            CatalogTrackModel.collection_id == collection_id
        )
        value = (await self.session.execute(stmt)).scalar_one_or_none()
        return ensure_utc_aware(value) if value is not None else None

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def clear_all(self) -> tuple[int, int]:
        """Delete every track and collection. Returns (collections, tracks) removed."""
        tracks = await self.session.execute(delete(CatalogTrackModel))
        collections = await self.session.execute(delete(CollectionModel))
        return (
            collections.rowcount or 0,  # type: ignore[attr-defined]
            tracks.rowcount or 0,  # type: ignore[attr-defined]
        )
