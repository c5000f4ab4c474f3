"""Geo-grid module — grid sampling, ranking metrics, recommendations, history, and reports."""

from heatmappro.modules.geo_grid.entities import (
    UNAVAILABLE,
    Competitor,
    GeoPoint,
    GridPoint,
    Keyword,
    MetricsSnapshot,
)
from heatmappro.modules.geo_grid.history import HistoryTracker
from heatmappro.modules.geo_grid.metrics import MetricsEngine
from heatmappro.modules.geo_grid.recommendations import RecommendationEngine
from heatmappro.modules.geo_grid.report_assembler import ShareLinkRegistry, WidgetRegistry
from heatmappro.modules.geo_grid.sampler import GridSampler
from heatmappro.modules.geo_grid.store import GeoGridStore

__all__ = [
    "UNAVAILABLE",
    "Competitor",
    "GeoPoint",
    "GridPoint",
    "Keyword",
    "MetricsSnapshot",
    "GridSampler",
    "MetricsEngine",
    "RecommendationEngine",
    "HistoryTracker",
    "ShareLinkRegistry",
    "WidgetRegistry",
    "GeoGridStore",
]
