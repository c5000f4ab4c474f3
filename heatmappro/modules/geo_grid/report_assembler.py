"""Report assembler — white-label reports, analytics exports, share links, widgets.

Nothing here samples or computes metrics; it only arranges values produced
by the sampler, metrics engine, recommendation engine, and history tracker.
"""

import csv
import io
import logging
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

from heatmappro.modules.geo_grid.entities import (
    UNAVAILABLE,
    CompetitorMetrics,
    GridPoint,
    Keyword,
    MetricsSnapshot,
    Recommendation,
    ShareLink,
    WidgetConfig,
    WidgetStyling,
    display_value,
    is_available,
)
from heatmappro.modules.geo_grid.history import HistoryTracker

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ["PDF", "CSV", "PNG", "GIF"]
DEFAULT_SHARE_BASE_URL = "https://heatmappro.com"
DEFAULT_EXPIRATION_DAYS = 30
CSV_COLUMNS = ["id", "row", "col", "lat", "lng", "rank", "visible"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_share_id() -> str:
    """Opaque URL-safe identifier with 128 bits of entropy."""
    return secrets.token_urlsafe(16)


def _iso(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _keyword_records(keywords: Sequence[Keyword]) -> list[dict[str, Any]]:
    return [
        {"term": k.term, "average_rank": k.avg_rank, "visibility": k.visibility}
        for k in keywords
    ]


# ----------------------------------------------------------------------
# Registries
# ----------------------------------------------------------------------

class ShareLinkRegistry:
    """Owned map of public share links keyed by generated id.

    Links are never evicted; expiry is checked when a link is read.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SHARE_BASE_URL,
        default_expiration_days: int = DEFAULT_EXPIRATION_DAYS,
        id_factory: Callable[[], str] = generate_share_id,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_expiration_days = default_expiration_days
        self._id_factory = id_factory
        self._links: dict[str, ShareLink] = {}

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, share_id: str) -> bool:
        return share_id in self._links

    def create(
        self,
        report_data: Any,
        expiration_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ShareLink:
        days = self.default_expiration_days if expiration_days is None else expiration_days
        if days < 0:
            raise ValueError(f"expiration_days must be >= 0, got {days}.")
        share_id = self._id_factory()
        while share_id in self._links:
            share_id = self._id_factory()
        created = now or _utcnow()
        link = ShareLink(
            id=share_id,
            url=f"{self.base_url}/share/{share_id}",
            report_data=report_data,
            created_at=created,
            expires_at=created + timedelta(days=days),
        )
        self._links[share_id] = link
        logger.info("Created share link %s (expires %s)", share_id, link.expires_at.isoformat())
        return link

    def add(self, link: ShareLink) -> None:
        """Register an existing link, e.g. one loaded from a store."""
        self._links[link.id] = link

    def get(self, share_id: str) -> Optional[ShareLink]:
        return self._links.get(share_id)

    def record_view(self, share_id: str, now: Optional[datetime] = None) -> bool:
        """Count a view; returns False for inactive or expired links.

        Raises:
            KeyError: if *share_id* is unknown.
        """
        link = self._links[share_id]
        if not link.is_live(now or _utcnow()):
            logger.debug("View on dead share link %s ignored", share_id)
            return False
        link.views += 1
        return True

    def deactivate(self, share_id: str) -> None:
        self._links[share_id].is_active = False
        logger.info("Deactivated share link %s", share_id)

    def active_links(self, now: Optional[datetime] = None) -> list[ShareLink]:
        now = now or _utcnow()
        return [link for link in self._links.values() if link.is_live(now)]


class WidgetRegistry:
    """Owned map of embeddable widget descriptors keyed by generated id."""

    def __init__(
        self,
        defaults: Optional[WidgetStyling] = None,
        update_frequency: str = "daily",
        id_factory: Callable[[], str] = generate_share_id,
    ):
        self.defaults = defaults or WidgetStyling()
        self.update_frequency = update_frequency
        self._id_factory = id_factory
        self._widgets: dict[str, WidgetConfig] = {}

    def __len__(self) -> int:
        return len(self._widgets)

    def create(
        self,
        grid_data: Any,
        options: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> WidgetConfig:
        options = options or {}
        widget_id = self._id_factory()
        while widget_id in self._widgets:
            widget_id = self._id_factory()
        styling = WidgetStyling(
            theme=options.get("theme") or self.defaults.theme,
            colors=list(options.get("colors") or self.defaults.colors),
            show_legend=options.get("show_legend", self.defaults.show_legend) is not False,
            show_metrics=options.get("show_metrics", self.defaults.show_metrics) is not False,
        )
        widget = WidgetConfig(
            id=widget_id,
            embed_reference=f"heatmappro-widget-{widget_id}",
            grid_data=grid_data,
            styling=styling,
            created_at=now or _utcnow(),
            update_frequency=options.get("update_frequency") or self.update_frequency,
            auto_update=options.get("auto_update", True) is not False,
        )
        self._widgets[widget_id] = widget
        logger.info("Created widget %s (theme=%s)", widget_id, styling.theme)
        return widget

    def get(self, widget_id: str) -> Optional[WidgetConfig]:
        return self._widgets.get(widget_id)


# ----------------------------------------------------------------------
# Payload builders
# ----------------------------------------------------------------------

def share_link_record(link: ShareLink) -> dict[str, Any]:
    return {
        "id": link.id,
        "url": link.url,
        "report_data": link.report_data,
        "created_at": link.created_at.isoformat(),
        "expires_at": link.expires_at.isoformat(),
        "views": link.views,
        "is_active": link.is_active,
    }


def widget_config_record(widget: WidgetConfig) -> dict[str, Any]:
    return {
        "id": widget.id,
        "embed_reference": widget.embed_reference,
        "grid_data": widget.grid_data,
        "styling": {
            "theme": widget.styling.theme,
            "colors": list(widget.styling.colors),
            "show_legend": widget.styling.show_legend,
            "show_metrics": widget.styling.show_metrics,
        },
        "created_at": widget.created_at.isoformat(),
        "update_frequency": widget.update_frequency,
        "auto_update": widget.auto_update,
    }


def current_metrics_block(
    metrics: "MetricsSnapshot | Any",
    competitor_position: Any = UNAVAILABLE,
) -> dict[str, Any]:
    """Human-facing metric strings; "N/A" wherever no data exists."""
    if not isinstance(metrics, MetricsSnapshot):
        na = str(UNAVAILABLE)
        return {
            "average_rank": na,
            "share_of_voice": na,
            "visibility_score": na,
            "percentile": na,
            "competitor_position": display_value(competitor_position, "{}"),
        }
    top3, total = metrics.visibility_score
    return {
        "average_rank": display_value(metrics.average_map_rank),
        "share_of_voice": display_value(metrics.share_of_local_voice, "{:.1f}%"),
        "visibility_score": f"{top3}/{total} points",
        "percentile": metrics.percentile,
        "competitor_position": display_value(competitor_position, "{}"),
    }


def white_label_report(
    business_name: str,
    tracker: HistoryTracker,
    competitor_metrics: Sequence[CompetitorMetrics] = (),
    recommendations: Sequence[Recommendation] = (),
    share_link: Optional[ShareLink] = None,
    widget: Optional[WidgetConfig] = None,
    branding: Optional[dict[str, Any]] = None,
    white_label: bool = True,
    competitor_position: Any = UNAVAILABLE,
    report_date: Optional[date] = None,
    grid_size: Optional[str] = None,
    keywords: Sequence[Keyword] = (),
) -> dict[str, Any]:
    """Assemble the client-brandable report payload.

    Point counts come from the latest snapshot and are None without history.
    """
    branding = branding or {}
    if white_label:
        client_logo = branding.get("logo")
        client_name = branding.get("name") or "Client Name"
        agency_name = branding.get("agency") or "Your Agency"
    else:
        client_logo, client_name, agency_name = None, business_name, "HeatMapPro"

    period = tracker.report_period()
    if is_available(period):
        report_period = f"{period[0].isoformat()} - {period[1].isoformat()}"
    else:
        report_period = str(UNAVAILABLE)

    summary = tracker.summary()
    best_day = summary["best_performing_day"]
    summary["best_performing_day"] = _iso(best_day) if is_available(best_day) else str(UNAVAILABLE)

    current = tracker.current_metrics()
    if isinstance(current, MetricsSnapshot):
        total_points, visible_points = current.total_points, current.visible_points
    else:
        total_points = visible_points = None

    report = {
        "client_logo": client_logo,
        "client_name": client_name,
        "agency_name": agency_name,
        "business_name": business_name,
        "report_date": (report_date or _utcnow().date()).isoformat(),
        "report_period": report_period,
        "grid_size": grid_size,
        "total_points": total_points,
        "visible_points": visible_points,
        "current_metrics": current_metrics_block(current, competitor_position),
        "keywords": _keyword_records(keywords),
        "competitor_analysis": [cm.to_dict() for cm in competitor_metrics],
        "time_lapse_summary": summary,
        "recommendations": [rec.to_dict() for rec in recommendations],
        "export_formats": list(EXPORT_FORMATS),
        "shareable_link": share_link.url if share_link else None,
        "widget_reference": (
            {"id": widget.id, "embed_reference": widget.embed_reference} if widget else None
        ),
    }
    logger.info("Assembled white-label report for %r (%d days)", business_name, len(tracker))
    return report


def analytics_export(
    grid: Sequence[GridPoint],
    metrics: MetricsSnapshot,
    keywords: Sequence[Keyword],
    business_name: str,
    grid_size: str,
    timestamp: Optional[datetime] = None,
) -> dict[str, Any]:
    """Flat payload for BI/reporting ingestion; points stay in row-major order."""
    amr = metrics.average_map_rank
    payload = {
        "timestamp": (timestamp or _utcnow()).isoformat(),
        "business_name": business_name,
        "grid_size": grid_size,
        "share_of_local_voice": metrics.share_of_local_voice,
        "average_rank": amr if is_available(amr) else None,
        "top_three_appearances": metrics.top_three_count,
        "total_points": metrics.total_points,
        "percentile": metrics.percentile,
        "keywords": _keyword_records(keywords),
        "grid_points": [
            {"lat": p.lat, "lng": p.lng, "rank": p.rank, "visible": p.visible}
            for p in grid
        ],
    }
    logger.info("Assembled analytics export: %d points, %d keywords", len(grid), len(keywords))
    return payload


def grid_points_csv(grid: Sequence[GridPoint]) -> str:
    """CSV rendition of the point list, header first, row-major order."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for p in grid:
        writer.writerow([p.point_id, p.row, p.col, p.lat, p.lng, p.rank, p.visible])
    return buf.getvalue()
