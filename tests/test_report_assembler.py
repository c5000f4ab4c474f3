"""Tests for report assembly, share links, and widgets."""

import csv
import io
import json
from datetime import date, datetime, timedelta, timezone
from itertools import count

import pytest

from heatmappro.modules.geo_grid.entities import (
    UNAVAILABLE,
    CompetitorMetrics,
    Keyword,
    Priority,
    Recommendation,
    RecommendationCategory,
    WidgetStyling,
)
from heatmappro.modules.geo_grid.history import HistoryTracker
from heatmappro.modules.geo_grid.metrics import MetricsEngine
from heatmappro.modules.geo_grid.report_assembler import (
    CSV_COLUMNS,
    EXPORT_FORMATS,
    ShareLinkRegistry,
    WidgetRegistry,
    analytics_export,
    current_metrics_block,
    grid_points_csv,
    share_link_record,
    white_label_report,
    widget_config_record,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ids(prefix="id"):
    counter = count(1)
    return lambda: f"{prefix}{next(counter)}"


# ===========================================================================
# 1. Share links
# ===========================================================================
class TestShareLinks:

    def test_create_defaults(self):
        registry = ShareLinkRegistry(id_factory=_ids())
        link = registry.create({"a": 1}, now=NOW)
        assert link.id == "id1"
        assert link.url == "https://heatmappro.com/share/id1"
        assert link.expires_at == NOW + timedelta(days=30)
        assert link.views == 0
        assert link.is_active is True
        assert link.report_data == {"a": 1}
        assert "id1" in registry

    def test_custom_base_and_expiry(self):
        registry = ShareLinkRegistry("https://share.example.com/", 14, id_factory=_ids())
        link = registry.create({}, expiration_days=7, now=NOW)
        assert link.url == "https://share.example.com/share/id1"
        assert link.expires_at == NOW + timedelta(days=7)

    def test_generated_ids_are_unique(self):
        registry = ShareLinkRegistry()
        ids = {registry.create({}).id for _ in range(50)}
        assert len(ids) == 50
        assert len(registry) == 50

    def test_id_collision_retries(self):
        values = iter(["dup", "dup", "fresh"])
        registry = ShareLinkRegistry(id_factory=lambda: next(values))
        registry.create({}, now=NOW)
        assert registry.create({}, now=NOW).id == "fresh"

    def test_negative_expiry_rejected(self):
        with pytest.raises(ValueError):
            ShareLinkRegistry().create({}, expiration_days=-1)

    def test_views_and_expiry(self):
        registry = ShareLinkRegistry(id_factory=_ids())
        link = registry.create({}, now=NOW)
        assert registry.record_view(link.id, now=NOW + timedelta(days=1)) is True
        assert registry.record_view(link.id, now=NOW + timedelta(days=30)) is False
        assert link.views == 1
        assert link.is_expired(NOW + timedelta(days=30))
        assert registry.get(link.id) is link

    def test_deactivate(self):
        registry = ShareLinkRegistry(id_factory=_ids())
        link = registry.create({}, now=NOW)
        registry.deactivate(link.id)
        assert registry.record_view(link.id, now=NOW) is False
        assert registry.active_links(now=NOW) == []

    def test_unknown_view_raises(self):
        with pytest.raises(KeyError):
            ShareLinkRegistry().record_view("missing")

    def test_record_is_json_ready(self):
        link = ShareLinkRegistry(id_factory=_ids()).create({"x": 1}, now=NOW)
        record = share_link_record(link)
        assert record["created_at"] == NOW.isoformat()
        json.dumps(record)


# ===========================================================================
# 2. Widgets
# ===========================================================================
class TestWidgets:

    def test_defaults(self):
        widget = WidgetRegistry(id_factory=_ids("w")).create([{"rank": 1}], now=NOW)
        assert widget.embed_reference == "heatmappro-widget-w1"
        assert widget.styling.theme == "professional"
        assert widget.styling.colors == ["#ff4444", "#ffaa44", "#44ff44"]
        assert widget.styling.show_legend is True
        assert widget.update_frequency == "daily"
        assert widget.auto_update is True

    def test_options_override(self):
        registry = WidgetRegistry(WidgetStyling(theme="dark"), id_factory=_ids("w"))
        widget = registry.create([], {"colors": ["#000"], "show_legend": False, "update_frequency": "hourly"})
        assert widget.styling.theme == "dark"
        assert widget.styling.colors == ["#000"]
        assert widget.styling.show_legend is False
        assert widget.styling.show_metrics is True
        assert widget.update_frequency == "hourly"
        assert registry.get(widget.id) is widget

    def test_record(self):
        widget = WidgetRegistry(id_factory=_ids("w")).create([], now=NOW)
        record = widget_config_record(widget)
        assert record["styling"]["theme"] == "professional"
        json.dumps(record)


# ===========================================================================
# 3. Metric blocks and white-label report
# ===========================================================================
class TestWhiteLabelReport:

    @pytest.fixture()
    def tracker(self, make_grid):
        tracker = HistoryTracker()
        tracker.append_snapshot(date(2024, 5, 1), make_grid([(5, True), (12, False)]))
        tracker.append_snapshot(date(2024, 5, 2), make_grid([(2, True), (3, True), (15, False)]))
        return tracker

    def test_current_metrics_block(self, make_grid):
        snap = MetricsEngine().compute_metrics(make_grid([(2, True), (3, True), (15, False)]))
        block = current_metrics_block(snap, 2)
        assert block == {
            "average_rank": "2.5",
            "share_of_voice": "66.7%",
            "visibility_score": "2/3 points",
            "percentile": "75th percentile — Good",
            "competitor_position": "2",
        }

    def test_block_without_data(self):
        block = current_metrics_block(UNAVAILABLE)
        assert set(block.values()) == {"N/A"}

    def test_white_label_branding(self, tracker):
        report = white_label_report(
            "Victory Cleaning", tracker,
            branding={"name": "Acme Client", "agency": "Rank Agency", "logo": "logo.png"},
            report_date=date(2024, 5, 3),
        )
        assert report["client_name"] == "Acme Client"
        assert report["agency_name"] == "Rank Agency"
        assert report["client_logo"] == "logo.png"
        assert report["report_date"] == "2024-05-03"
        assert report["report_period"] == "2024-05-01 - 2024-05-02"
        assert report["current_metrics"]["average_rank"] == "2.5"
        assert report["current_metrics"]["competitor_position"] == "N/A"
        assert report["time_lapse_summary"]["best_performing_day"] == "2024-05-02"
        assert report["time_lapse_summary"]["trend_direction"] == "Improving"
        assert report["export_formats"] == EXPORT_FORMATS
        assert report["shareable_link"] is None

    def test_default_branding_placeholders(self, tracker):
        report = white_label_report("Victory Cleaning", tracker)
        assert report["client_name"] == "Client Name"
        assert report["agency_name"] == "Your Agency"

    def test_not_white_label(self, tracker):
        report = white_label_report("Victory Cleaning", tracker, white_label=False)
        assert report["client_name"] == "Victory Cleaning"
        assert report["agency_name"] == "HeatMapPro"
        assert report["client_logo"] is None

    def test_links_competitors_and_recommendations(self, tracker):
        link = ShareLinkRegistry(id_factory=_ids()).create({}, now=NOW)
        widget = WidgetRegistry(id_factory=_ids("w")).create([], now=NOW)
        rec = Recommendation(
            RecommendationCategory.KEYWORDS, Priority.MEDIUM, "t", "d", "i",
        )
        report = white_label_report(
            "Victory Cleaning", tracker,
            competitor_metrics=[CompetitorMetrics("Alpha", UNAVAILABLE, 0, 0)],
            recommendations=[rec],
            share_link=link,
            widget=widget,
            competitor_position=1,
        )
        assert report["shareable_link"] == "https://heatmappro.com/share/id1"
        assert report["widget_reference"] == {"id": "w1", "embed_reference": "heatmappro-widget-w1"}
        assert report["competitor_analysis"] == [{"name": "Alpha", "average_rank": "N/A", "visibility": 0}]
        assert report["recommendations"][0]["type"] == "keywords"
        assert report["current_metrics"]["competitor_position"] == "1"
        json.dumps(report)

    def test_grid_and_keyword_fields(self, tracker):
        report = white_label_report(
            "Victory Cleaning", tracker,
            grid_size="1x3",
            keywords=[Keyword("house cleaning", 4.2, 78.0)],
        )
        assert report["grid_size"] == "1x3"
        assert report["total_points"] == 3
        assert report["visible_points"] == 2
        assert report["keywords"] == [
            {"term": "house cleaning", "average_rank": 4.2, "visibility": 78.0}
        ]

    def test_empty_history(self):
        report = white_label_report("Victory Cleaning", HistoryTracker())
        assert report["total_points"] is None
        assert report["visible_points"] is None
        assert report["keywords"] == []
        assert report["report_period"] == "N/A"
        assert report["current_metrics"]["average_rank"] == "N/A"
        assert report["time_lapse_summary"]["best_performing_day"] == "N/A"
        assert report["time_lapse_summary"]["trend_direction"] == "Stable"


# ===========================================================================
# 4. Analytics export
# ===========================================================================
class TestAnalyticsExport:

    def test_payload(self, make_grid):
        grid = make_grid([(2, True), (15, False), (3, True)])
        snap = MetricsEngine().compute_metrics(grid)
        payload = analytics_export(
            grid, snap, [Keyword("house cleaning", 4.2, 78.0)],
            "Victory Cleaning", "1x3", timestamp=NOW,
        )
        assert payload["timestamp"] == NOW.isoformat()
        assert payload["grid_size"] == "1x3"
        assert payload["share_of_local_voice"] == 66.7
        assert payload["average_rank"] == 2.5
        assert payload["top_three_appearances"] == 2
        assert payload["keywords"] == [
            {"term": "house cleaning", "average_rank": 4.2, "visibility": 78.0}
        ]
        assert [p["rank"] for p in payload["grid_points"]] == [2, 15, 3]
        json.dumps(payload)

    def test_no_visible_points(self, make_grid):
        grid = make_grid([(15, False)])
        payload = analytics_export(grid, MetricsEngine().compute_metrics(grid), [], "B", "1x1")
        assert payload["average_rank"] is None

    def test_csv(self, make_grid):
        text = grid_points_csv(make_grid([(2, True), (15, False)]))
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == CSV_COLUMNS
        assert rows[1][0] == "0-0"
        assert rows[2][5] == "15"
        assert len(rows) == 3
