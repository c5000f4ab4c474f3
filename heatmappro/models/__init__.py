"""SQLAlchemy ORM models. Importing this package registers every table on Base.metadata."""

from heatmappro.models.geo_grid import (
    GeoGridSnapshotRecord,
    ShareLinkRecord,
    WidgetRecord,
)

__all__ = [
    "GeoGridSnapshotRecord",
    "ShareLinkRecord",
    "WidgetRecord",
]
