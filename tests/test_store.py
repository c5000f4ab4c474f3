"""Tests for the SQLAlchemy geo-grid store."""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from heatmappro.database import database_status, get_session
from heatmappro.models.geo_grid import GeoGridSnapshotRecord
from heatmappro.modules.geo_grid.entities import UNAVAILABLE, CompetitorSample, WidgetStyling
from heatmappro.modules.geo_grid.history import HistoryTracker
from heatmappro.modules.geo_grid.report_assembler import ShareLinkRegistry, WidgetRegistry
from heatmappro.modules.geo_grid.store import GeoGridStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestSnapshots:

    def test_round_trip_history(self, test_db, make_point):
        sample = CompetitorSample("Alpha", 4, 1.5, 2.5, 3.5)
        grid = [
            make_point(rank=2, row=0, col=0, competitors=[sample]),
            make_point(rank=15, visible=False, row=0, col=1),
        ]
        tracker = HistoryTracker()
        first = tracker.append_snapshot(date(2024, 5, 1), grid)
        second = tracker.append_snapshot(date(2024, 5, 2), grid[1:])

        store = GeoGridStore()
        store.save_snapshot("Victory", "1x2", second)
        store.save_snapshot("Victory", "1x2", first)
        store.save_snapshot("Other", "1x2", first)

        loaded = store.load_history("Victory")
        assert len(loaded) == 2
        assert [s.date for s in loaded.snapshots] == [date(2024, 5, 1), date(2024, 5, 2)]
        assert loaded.snapshots[0].grid == first.grid
        assert loaded.snapshots[0].metrics == first.metrics
        assert loaded.snapshots[1].metrics.average_map_rank is UNAVAILABLE

        with get_session() as session:
            row = session.query(GeoGridSnapshotRecord).filter_by(business_name="Victory").first()
            assert row.grid_size == "1x2"

    def test_duplicate_day_rejected(self, test_db, make_grid):
        snap = HistoryTracker().append_snapshot(date(2024, 5, 1), make_grid([(2, True)]))
        store = GeoGridStore()
        store.save_snapshot("Victory", "1x1", snap)
        with pytest.raises(IntegrityError):
            store.save_snapshot("Victory", "1x1", snap)

    def test_unknown_business_is_empty(self, test_db):
        assert len(GeoGridStore().load_history("Nobody")) == 0

    def test_status_counts(self, test_db, make_grid):
        snap = HistoryTracker().append_snapshot(date(2024, 5, 1), make_grid([(2, True)]))
        GeoGridStore().save_snapshot("Victory", "1x1", snap)
        info = database_status()
        assert info["tables"]["geo_grid_snapshots"] == 1
        assert info["tables"]["share_links"] == 0


class TestShareLinks:

    def test_save_load_and_views(self, test_db):
        link = ShareLinkRegistry().create({"business_name": "Victory"}, now=NOW)
        store = GeoGridStore()
        store.save_share_link(link)

        loaded = store.load_share_link(link.id)
        assert loaded.url == link.url
        assert loaded.expires_at == link.expires_at
        assert loaded.report_data == {"business_name": "Victory"}

        assert store.record_view(link.id, now=NOW + timedelta(days=1)) is True
        assert store.record_view(link.id, now=NOW + timedelta(days=31)) is False
        assert store.load_share_link(link.id).views == 1

    def test_missing(self, test_db):
        store = GeoGridStore()
        assert store.load_share_link("nope") is None
        with pytest.raises(KeyError):
            store.record_view("nope")

    def test_save_is_upsert(self, test_db):
        link = ShareLinkRegistry().create({}, now=NOW)
        store = GeoGridStore()
        store.save_share_link(link)
        link.is_active = False
        store.save_share_link(link)
        assert store.load_share_link(link.id).is_active is False


class TestWidgets:

    def test_save_widget(self, test_db):
        widget = WidgetRegistry().create([], now=NOW)
        GeoGridStore().save_widget(widget)
        assert database_status()["tables"]["widgets"] == 1

    def test_save_and_load_widget(self, test_db):
        registry = WidgetRegistry(WidgetStyling(theme="dark"), update_frequency="hourly")
        grid_data = [{"id": "0-0", "rank": 2}, {"id": "0-1", "rank": 14}]
        widget = registry.create(grid_data, {"show_legend": False}, now=NOW)
        widget.auto_update = False
        store = GeoGridStore()
        store.save_widget(widget)

        loaded = store.load_widget(widget.id)
        assert loaded.embed_reference == widget.embed_reference
        assert loaded.grid_data == grid_data
        assert loaded.styling == widget.styling
        assert loaded.styling.show_legend is False
        assert loaded.update_frequency == "hourly"
        assert loaded.auto_update is False
        assert loaded.created_at == NOW

    def test_missing_widget(self, test_db):
        assert GeoGridStore().load_widget("nope") is None
