"""Application orchestrator: wires the geo-grid components for one business."""

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from heatmappro.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from heatmappro.modules.geo_grid.entities import (
    Competitor,
    CompetitorMetrics,
    GridPoint,
    HistorySnapshot,
    Keyword,
    MetricsSnapshot,
    Recommendation,
)
from heatmappro.modules.geo_grid.history import HistoryTracker
from heatmappro.modules.geo_grid.metrics import MetricsEngine
from heatmappro.modules.geo_grid.recommendations import RecommendationEngine
from heatmappro.modules.geo_grid.report_assembler import (
    ShareLinkRegistry,
    WidgetRegistry,
    analytics_export,
    current_metrics_block,
    white_label_report,
)
from heatmappro.modules.geo_grid.sampler import (
    GridSampler,
    RandomSource,
    format_grid_size,
    parse_grid_size,
)

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Everything produced by one geo-grid scan."""
    grid_size: str
    grid: list[GridPoint]
    metrics: MetricsSnapshot
    competitor_metrics: list[CompetitorMetrics]
    recommendations: list[Recommendation]
    snapshot: HistorySnapshot


class HeatMapPro:
    """Central application class for one tracked business.

    Usage::

        app = HeatMapPro()
        app.initialize()
        scan = app.run_scan("7x7")
        report = app.build_white_label_report()
    """

    def __init__(
        self,
        config_path: str = DEFAULT_CONFIG_PATH,
        env_path: str = ".env",
        random_source: Optional[RandomSource] = None,
        persist: bool = False,
    ):
        self._config_path = config_path
        self._env_path = env_path
        self._random_source = random_source
        self._persist = persist
        self._initialized = False
        self.settings: Settings = Settings()
        self.last_scan: Optional[ScanResult] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load environment and settings, then build the components."""
        if self._initialized:
            return

        env_file = Path(self._env_path)
        if env_file.exists():
            load_dotenv(env_file)
            logger.info("Loaded environment from %s", self._env_path)

        self.settings = load_settings(self._config_path)
        grid_cfg = self.settings.grid
        share_cfg = self.settings.share

        self.sampler = GridSampler(self._random_source, grid_cfg.visibility_probability)
        self.metrics = MetricsEngine()
        self.recommender = RecommendationEngine()
        self.tracker = HistoryTracker(self.metrics)
        self.share_links = ShareLinkRegistry(share_cfg.base_url, share_cfg.expiration_days)
        self.widgets = WidgetRegistry(
            self.settings.widget_styling,
            update_frequency=self.settings.raw["widget"]["update_frequency"],
        )

        self.store = None
        if self._persist:
            from heatmappro.database import init_db
            from heatmappro.modules.geo_grid.store import GeoGridStore
            db_cfg = self.settings.raw["database"]
            init_db(database_url=db_cfg.get("url"), echo=bool(db_cfg.get("echo", False)))
            self.store = GeoGridStore()
            self.tracker = self.store.load_history(self.business_name, self.metrics)

        self._initialized = True
        logger.info("HeatMapPro initialised for %r", self.business_name)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Call initialize() before using the application.")

    # ------------------------------------------------------------------
    # Configured inputs
    # ------------------------------------------------------------------

    @property
    def business_name(self) -> str:
        return self.settings.business_name

    @property
    def competitors(self) -> list[Competitor]:
        return [Competitor(str(name)) for name in self.settings.raw["business"]["competitors"]]

    @property
    def keywords(self) -> list[Keyword]:
        return [
            Keyword(
                term=str(kw["term"]),
                avg_rank=float(kw["avg_rank"]),
                visibility=float(kw["visibility"]),
            )
            for kw in self.settings.raw["business"]["keywords"]
        ]

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def run_scan(self, grid_size: Optional[str] = None, day: Optional[date] = None) -> ScanResult:
        """Sample a grid, compute metrics and recommendations, record history."""
        self._ensure_initialized()
        grid_cfg = self.settings.grid
        rows, cols = parse_grid_size(grid_size or grid_cfg.default_size)
        size = format_grid_size(rows, cols)
        competitors = self.competitors

        grid = self.sampler.generate_grid(rows, cols, grid_cfg.center, grid_cfg.spacing, competitors)
        metrics = self.metrics.compute_metrics(grid)
        competitor_metrics = self.metrics.competitor_analysis(grid, competitors)
        recommendations = self.recommender.generate_recommendations(
            grid, competitor_metrics, self.keywords,
        )
        snapshot = self.tracker.append_snapshot(day or date.today(), grid, metrics)

        if self.store is not None:
            try:
                self.store.save_snapshot(self.business_name, size, snapshot)
            except Exception as exc:
                logger.error("Failed to persist snapshot for %s: %s", snapshot.date, exc)

        self.last_scan = ScanResult(
            grid_size=size,
            grid=grid,
            metrics=metrics,
            competitor_metrics=competitor_metrics,
            recommendations=recommendations,
            snapshot=snapshot,
        )
        logger.info(
            "Scan %s for %r: SoLV=%.1f, %d recommendations",
            size, self.business_name, metrics.share_of_local_voice, len(recommendations),
        )
        return self.last_scan

    def load_demo_history(
        self,
        days: int = 30,
        grid_size: str = "5x5",
        today: Optional[date] = None,
    ) -> list[HistorySnapshot]:
        """Fill the tracker with synthetic history (demo only)."""
        self._ensure_initialized()
        rows, cols = parse_grid_size(grid_size)
        grid_cfg = self.settings.grid
        return self.tracker.generate_synthetic_series(
            days,
            today=today,
            sampler=self.sampler,
            rows=rows,
            cols=cols,
            center=grid_cfg.center,
            spacing=grid_cfg.spacing,
        )

    def _require_scan(self) -> ScanResult:
        if self.last_scan is None:
            raise RuntimeError("Run a scan before building reports.")
        return self.last_scan

    def build_white_label_report(
        self,
        branding: Optional[dict[str, Any]] = None,
        white_label: Optional[bool] = None,
    ) -> dict[str, Any]:
        self._ensure_initialized()
        scan = self._require_scan()
        if white_label is None:
            white_label = bool(self.settings.raw["branding"].get("white_label", True))
        position = self.metrics.competitor_position(
            scan.metrics.average_map_rank, scan.competitor_metrics,
        )
        share_link = self.share_links.create({
            "business_name": self.business_name,
            "grid_size": scan.grid_size,
            "current_metrics": current_metrics_block(scan.metrics, position),
        })
        widget = self.widgets.create([p.to_dict() for p in scan.grid])

        if self.store is not None:
            try:
                self.store.save_share_link(share_link)
                self.store.save_widget(widget)
            except Exception as exc:
                logger.error("Failed to persist share link/widget: %s", exc)

        return white_label_report(
            business_name=self.business_name,
            tracker=self.tracker,
            competitor_metrics=scan.competitor_metrics,
            recommendations=scan.recommendations,
            share_link=share_link,
            widget=widget,
            branding=branding or self.settings.branding,
            white_label=white_label,
            competitor_position=position,
            grid_size=scan.grid_size,
            keywords=self.keywords,
        )

    def build_analytics_export(self) -> dict[str, Any]:
        self._ensure_initialized()
        scan = self._require_scan()
        return analytics_export(
            scan.grid, scan.metrics, self.keywords, self.business_name, scan.grid_size,
        )
