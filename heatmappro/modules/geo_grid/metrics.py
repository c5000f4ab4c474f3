"""Metrics engine — Average Map Rank, Share of Local Voice, and friends."""

import logging
from typing import Optional, Sequence

from heatmappro.modules.geo_grid.entities import (
    UNAVAILABLE,
    Competitor,
    CompetitorMetrics,
    EmptyGridError,
    GridPoint,
    MaybeFloat,
    MetricsSnapshot,
    Unavailable,
    is_available,
)

logger = logging.getLogger(__name__)

TOP_THREE = 3

# Industry benchmarks for SoLV, highest threshold first.
PERCENTILE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (80.0, "95th percentile — Excellent"),
    (60.0, "75th percentile — Good"),
    (40.0, "50th percentile — Average"),
    (20.0, "25th percentile — Below Average"),
)
PERCENTILE_FLOOR = "10th percentile — Needs Improvement"


def classify_percentile(solv: float) -> str:
    """Bucket a Share of Local Voice value into its percentile label."""
    for threshold, label in PERCENTILE_THRESHOLDS:
        if solv >= threshold:
            return label
    return PERCENTILE_FLOOR


def _require_points(grid: Sequence[GridPoint], metric: str) -> None:
    if not grid:
        logger.warning("%s requested for an empty grid", metric)
        raise EmptyGridError(f"{metric} requires a non-empty grid.")


class MetricsEngine:
    """Compute derived ranking metrics from a geo-grid.

    Every call recomputes from the grid it is given.  ``last_metrics`` keeps
    the most recent snapshot for display only.
    """

    def __init__(self) -> None:
        self.last_metrics: Optional[MetricsSnapshot] = None

    # ------------------------------------------------------------------
    # Scalar metrics
    # ------------------------------------------------------------------

    @staticmethod
    def average_map_rank(grid: Sequence[GridPoint]) -> MaybeFloat:
        """Mean rank over visible points, or UNAVAILABLE if none are visible."""
        visible = [p.rank for p in grid if p.visible]
        if not visible:
            return UNAVAILABLE
        return round(sum(visible) / len(visible), 1)

    @staticmethod
    def top_three_count(grid: Sequence[GridPoint]) -> int:
        return sum(1 for p in grid if p.rank <= TOP_THREE)

    @classmethod
    def share_of_local_voice(cls, grid: Sequence[GridPoint]) -> float:
        """Percentage of points ranked in the top three, one decimal."""
        _require_points(grid, "Share of Local Voice")
        return round(cls.top_three_count(grid) / len(grid) * 100, 1)

    @classmethod
    def visibility_score(cls, grid: Sequence[GridPoint]) -> tuple[int, int]:
        """Return ``(top_three_count, total_points)``."""
        return cls.top_three_count(grid), len(grid)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def compute_metrics(self, grid: Sequence[GridPoint]) -> MetricsSnapshot:
        solv = self.share_of_local_voice(grid)
        top3, total = self.visibility_score(grid)
        snapshot = MetricsSnapshot(
            average_map_rank=self.average_map_rank(grid),
            share_of_local_voice=solv,
            top_three_count=top3,
            total_points=total,
            visible_points=sum(1 for p in grid if p.visible),
            percentile=classify_percentile(solv),
        )
        self.last_metrics = snapshot
        logger.info(
            "Grid metrics: AMR=%s SoLV=%.1f top3=%d/%d",
            snapshot.average_map_rank, solv, top3, total,
        )
        return snapshot

    # ------------------------------------------------------------------
    # Competitors
    # ------------------------------------------------------------------

    @staticmethod
    def competitor_metrics(grid: Sequence[GridPoint], name: str) -> CompetitorMetrics:
        """Aggregate one competitor's samples; unknown names give an empty aggregate."""
        ranks = []
        for point in grid:
            sample = point.competitor(name)
            if sample is not None:
                ranks.append(sample.rank)
        average: MaybeFloat = round(sum(ranks) / len(ranks), 1) if ranks else UNAVAILABLE
        return CompetitorMetrics(
            name=name,
            average_rank=average,
            visibility=sum(1 for r in ranks if r <= TOP_THREE),
            sample_count=len(ranks),
        )

    def competitor_analysis(
        self,
        grid: Sequence[GridPoint],
        competitors: Sequence[Competitor],
    ) -> list[CompetitorMetrics]:
        return [self.competitor_metrics(grid, comp.name) for comp in competitors]

    @staticmethod
    def competitor_position(
        average_map_rank: MaybeFloat,
        competitor_metrics: Sequence[CompetitorMetrics],
    ) -> "int | Unavailable":
        """1-based standing of the tracked business among its competitors.

        Ties with a competitor go to the business.
        """
        if not is_available(average_map_rank):
            return UNAVAILABLE
        ahead = sum(
            1 for cm in competitor_metrics
            if is_available(cm.average_rank) and cm.average_rank < average_map_rank
        )
        return ahead + 1
