"""Geo-grid history, share-link, and widget SQLAlchemy models."""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from heatmappro.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeoGridSnapshotRecord(Base):
    """One day of geo-grid history for a business."""

    __tablename__ = "geo_grid_snapshots"
    __table_args__ = (
        UniqueConstraint("business_name", "snapshot_date", name="uq_snapshot_business_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    grid_size: Mapped[str] = mapped_column(String(20), nullable=False)
    average_map_rank: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    share_of_local_voice: Mapped[float] = mapped_column(Float, nullable=False)
    grid_json: Mapped[list] = mapped_column(JSON, nullable=False)
    metrics_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<GeoGridSnapshotRecord id={self.id} business={self.business_name!r} "
            f"date={self.snapshot_date} amr={self.average_map_rank}>"
        )


class ShareLinkRecord(Base):
    """Public share link for a report payload."""

    __tablename__ = "share_links"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    report_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ShareLinkRecord id={self.id!r} views={self.views} active={self.is_active}>"


class WidgetRecord(Base):
    """Embeddable widget descriptor."""

    __tablename__ = "widgets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    embed_reference: Mapped[str] = mapped_column(String(200), nullable=False)
    grid_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    styling_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    update_frequency: Mapped[str] = mapped_column(String(50), nullable=False, default="daily")
    auto_update: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self) -> str:
        return f"<WidgetRecord id={self.id!r} freq={self.update_frequency!r}>"
