"""SQLAlchemy-backed store for geo-grid history and share links.

The aggregation core never calls this on its own; the application layer
decides when to persist and reload.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from heatmappro.database import get_session
from heatmappro.models.geo_grid import GeoGridSnapshotRecord, ShareLinkRecord, WidgetRecord
from heatmappro.modules.geo_grid.entities import (
    GridPoint,
    HistorySnapshot,
    MetricsSnapshot,
    ShareLink,
    WidgetConfig,
    WidgetStyling,
    is_available,
)
from heatmappro.modules.geo_grid.history import HistoryTracker
from heatmappro.modules.geo_grid.metrics import MetricsEngine

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored timestamps are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeoGridStore:
    """Persist and reload geo-grid snapshots, share links, and widgets.

    Usage::

        store = GeoGridStore()
        store.save_snapshot("Victory Cleaning", "7x7", snapshot)
        tracker = store.load_history("Victory Cleaning")
    """

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def save_snapshot(self, business_name: str, grid_size: str, snapshot: HistorySnapshot) -> int:
        amr = snapshot.metrics.average_map_rank
        with get_session() as session:
            record = GeoGridSnapshotRecord(
                business_name=business_name,
                snapshot_date=snapshot.date,
                grid_size=grid_size,
                average_map_rank=amr if is_available(amr) else None,
                share_of_local_voice=snapshot.metrics.share_of_local_voice,
                grid_json=[p.to_dict() for p in snapshot.grid],
                metrics_json=snapshot.metrics.to_dict(),
            )
            session.add(record)
            session.flush()
            record_id = record.id
        logger.debug("Saved snapshot %s for %r (id=%d)", snapshot.date, business_name, record_id)
        return record_id

    def load_history(
        self,
        business_name: str,
        metrics_engine: Optional[MetricsEngine] = None,
    ) -> HistoryTracker:
        """Rebuild a tracker from stored snapshots in date order."""
        with get_session() as session:
            rows = (
                session.query(GeoGridSnapshotRecord)
                .filter(GeoGridSnapshotRecord.business_name == business_name)
                .order_by(GeoGridSnapshotRecord.snapshot_date.asc())
                .all()
            )

        tracker = HistoryTracker(metrics_engine)
        for row in rows:
            tracker.append_snapshot(
                row.snapshot_date,
                [GridPoint.from_dict(p) for p in row.grid_json],
                MetricsSnapshot.from_dict(row.metrics_json),
            )
        logger.info("Loaded %d snapshots for %r", len(rows), business_name)
        return tracker

    # ------------------------------------------------------------------
    # Share links
    # ------------------------------------------------------------------

    def save_share_link(self, link: ShareLink) -> None:
        with get_session() as session:
            session.merge(ShareLinkRecord(
                id=link.id,
                url=link.url,
                report_json=link.report_data,
                created_at=link.created_at,
                expires_at=link.expires_at,
                views=link.views,
                is_active=link.is_active,
            ))
        logger.debug("Saved share link %s", link.id)

    def load_share_link(self, share_id: str) -> Optional[ShareLink]:
        with get_session() as session:
            row = session.get(ShareLinkRecord, share_id)
        if row is None:
            return None
        return ShareLink(
            id=row.id,
            url=row.url,
            report_data=row.report_json,
            created_at=_aware(row.created_at),
            expires_at=_aware(row.expires_at),
            views=row.views,
            is_active=row.is_active,
        )

    def record_view(self, share_id: str, now: Optional[datetime] = None) -> bool:
        """Increment the stored view counter of a live link.

        Raises:
            KeyError: if no link with *share_id* is stored.
        """
        now = now or _utcnow()
        with get_session() as session:
            row = session.get(ShareLinkRecord, share_id)
            if row is None:
                raise KeyError(share_id)
            if not row.is_active or now >= _aware(row.expires_at):
                return False
            row.views += 1
        return True

    # ------------------------------------------------------------------
    # Widgets
    # ------------------------------------------------------------------

    def save_widget(self, widget: WidgetConfig) -> None:
        with get_session() as session:
            session.merge(WidgetRecord(
                id=widget.id,
                embed_reference=widget.embed_reference,
                grid_json=widget.grid_data,
                styling_json={
                    "theme": widget.styling.theme,
                    "colors": list(widget.styling.colors),
                    "show_legend": widget.styling.show_legend,
                    "show_metrics": widget.styling.show_metrics,
                },
                update_frequency=widget.update_frequency,
                auto_update=widget.auto_update,
                created_at=widget.created_at,
            ))
        logger.debug("Saved widget %s", widget.id)

    def load_widget(self, widget_id: str) -> Optional[WidgetConfig]:
        with get_session() as session:
            row = session.get(WidgetRecord, widget_id)
        if row is None:
            return None
        styling = row.styling_json
        return WidgetConfig(
            id=row.id,
            embed_reference=row.embed_reference,
            grid_data=row.grid_json,
            styling=WidgetStyling(
                theme=styling["theme"],
                colors=list(styling["colors"]),
                show_legend=bool(styling["show_legend"]),
                show_metrics=bool(styling["show_metrics"]),
            ),
            created_at=_aware(row.created_at),
            update_frequency=row.update_frequency,
            auto_update=row.auto_update,
        )
