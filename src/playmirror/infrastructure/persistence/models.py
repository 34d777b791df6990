"""SQLAlchemy ORM models for the mirrored catalog."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back "naive". Run
# every timestamp read from the DB through this before comparing with utc_now(), otherwise you
# get "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CollectionModel(Base):
    """A mirrored collection: playlist, Liked Songs, or saved album.

    kind is derived from the id namespace and stored so reconciliation can
    scope its deletes with a plain WHERE clause.
    """

    __tablename__ = "catalog_collections"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    track_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    last_sync_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    tracks: Mapped[list["CatalogTrackModel"]] = relationship(
        "CatalogTrackModel",
        back_populates="collection",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CatalogTrackModel.position",
    )


# Listen, the primary key is (collection_id, provider_track_id) on purpose. The same song in two
# playlists is two rows and each one gets resolved on its own. external_id stays NULL until the
# resolution cache fills it; an empty string is never stored.
class CatalogTrackModel(Base):
    """One track occurrence inside a collection."""

    __tablename__ = "catalog_tracks"

    collection_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("catalog_collections.id", ondelete="CASCADE"),
        primary_key=True,
    )
    provider_track_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    artists: Mapped[str] = mapped_column(Text, nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_sync_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    collection: Mapped["CollectionModel"] = relationship(
        "CollectionModel", back_populates="tracks"
    )

    __table_args__ = (
        Index("ix_catalog_tracks_position", "collection_id", "position"),
        Index("ix_catalog_tracks_provider_track_id", "provider_track_id"),
    )
