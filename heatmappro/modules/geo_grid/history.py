"""Rolling per-day geo-grid snapshots and trend queries."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Optional, Sequence

from heatmappro.modules.geo_grid.entities import (
    UNAVAILABLE,
    GeoPoint,
    GridPoint,
    HistoryOrderError,
    HistorySnapshot,
    MetricsSnapshot,
    Unavailable,
    is_available,
)
from heatmappro.modules.geo_grid.metrics import TOP_THREE, MetricsEngine
from heatmappro.modules.geo_grid.sampler import (
    DEFAULT_CENTER,
    DEFAULT_SPACING,
    MAX_RANK,
    GridSampler,
    grid_coordinate,
    validate_dimensions,
)

logger = logging.getLogger(__name__)

TREND_WINDOW = 7
TREND_THRESHOLD = 0.5
SYNTHETIC_VISIBILITY_PROBABILITY = 0.75
# Point rank = base + drift*sin(0.2*day) + spread*sin(0.1*day + 0.5*point)
SYNTHETIC_BASE_RANK = 5.2
SYNTHETIC_DRIFT = 2.0
SYNTHETIC_SPREAD = 5.0
WEAK_RANK_THRESHOLD = 10


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class HistoryTracker:
    """Append-only, chronologically ordered geo-grid history for one profile.

    One tracker belongs to one business/profile; callers serialise writes.

    Usage::

        tracker = HistoryTracker()
        tracker.append_snapshot(date(2024, 5, 1), grid)
        tracker.trend_direction()     # "Improving" | "Declining" | "Stable"
    """

    def __init__(self, metrics_engine: Optional[MetricsEngine] = None):
        self._metrics = metrics_engine or MetricsEngine()
        self._snapshots: list[HistorySnapshot] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def snapshots(self) -> tuple[HistorySnapshot, ...]:
        return tuple(self._snapshots)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append_snapshot(
        self,
        day: date,
        grid: Sequence[GridPoint],
        metrics: Optional[MetricsSnapshot] = None,
    ) -> HistorySnapshot:
        """Append one day's grid; metrics are computed when not supplied."""
        day = _as_date(day)
        if self._snapshots and day <= self._snapshots[-1].date:
            logger.warning(
                "Out-of-order snapshot %s (last is %s)", day, self._snapshots[-1].date,
            )
            raise HistoryOrderError(
                f"Snapshot date {day.isoformat()} must be after "
                f"{self._snapshots[-1].date.isoformat()}."
            )
        if metrics is None:
            metrics = self._metrics.compute_metrics(grid)
        snapshot = HistorySnapshot(date=day, grid=tuple(grid), metrics=metrics)
        self._snapshots.append(snapshot)
        logger.debug("Appended snapshot for %s (%d total)", day, len(self._snapshots))
        return snapshot

    def generate_synthetic_series(
        self,
        days: int = 30,
        today: Optional[date] = None,
        sampler: Optional[GridSampler] = None,
        rows: int = 5,
        cols: int = 5,
        center: GeoPoint = DEFAULT_CENTER,
        spacing: float = DEFAULT_SPACING,
    ) -> list[HistorySnapshot]:
        """Replace the history with *days* demo snapshots ending *today*.

        Point ranks follow smooth sine curves around a drifting baseline and
        each snapshot's metrics are computed from its own grid.  Real
        deployments should append real snapshots instead.
        """
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}.")
        validate_dimensions(rows, cols, spacing)
        sampler = sampler or GridSampler()
        end = _as_date(today or date.today())
        start = end - timedelta(days=days - 1)

        self._snapshots = []
        for i in range(days):
            grid = self._synthetic_grid(i, sampler, rows, cols, center, spacing)
            self._snapshots.append(HistorySnapshot(
                date=start + timedelta(days=i),
                grid=tuple(grid),
                metrics=self._metrics.compute_metrics(grid),
            ))

        logger.info("Generated %d synthetic history snapshots ending %s", days, end)
        return list(self._snapshots)

    @staticmethod
    def _synthetic_grid(
        day_offset: int,
        sampler: GridSampler,
        rows: int,
        cols: int,
        center: GeoPoint,
        spacing: float,
    ) -> list[GridPoint]:
        points = []
        for k in range(rows * cols):
            i, j = divmod(k, cols)
            lat, lng = grid_coordinate(center, spacing, rows, cols, i, j)
            baseline = SYNTHETIC_BASE_RANK + math.sin(day_offset * 0.2) * SYNTHETIC_DRIFT
            rank = round(baseline + math.sin(day_offset * 0.1 + k * 0.5) * SYNTHETIC_SPREAD)
            points.append(GridPoint(
                row=i,
                col=j,
                lat=lat,
                lng=lng,
                rank=max(1, min(MAX_RANK, rank)),
                visible=sampler.sample_visibility(SYNTHETIC_VISIBILITY_PROBABILITY),
            ))
        return points

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def trend_direction(self) -> str:
        if len(self._snapshots) < 2:
            return "Stable"
        recent = self._snapshots[-TREND_WINDOW:]
        first = recent[0].metrics.average_map_rank
        last = recent[-1].metrics.average_map_rank
        if not (is_available(first) and is_available(last)):
            return "Stable"
        delta = last - first
        if delta < -TREND_THRESHOLD:
            return "Improving"
        if delta > TREND_THRESHOLD:
            return "Declining"
        return "Stable"

    def best_performing_day(self) -> "date | Unavailable":
        best: Optional[HistorySnapshot] = None
        for snap in self._snapshots:
            amr = snap.metrics.average_map_rank
            if not is_available(amr):
                continue
            if best is None or amr < best.metrics.average_map_rank:
                best = snap
        return best.date if best is not None else UNAVAILABLE

    def current_metrics(self) -> "MetricsSnapshot | Unavailable":
        if not self._snapshots:
            return UNAVAILABLE
        return self._snapshots[-1].metrics

    def latest_grid(self) -> tuple[GridPoint, ...]:
        if not self._snapshots:
            return ()
        return self._snapshots[-1].grid

    def report_period(self) -> "tuple[date, date] | Unavailable":
        if not self._snapshots:
            return UNAVAILABLE
        return self._snapshots[0].date, self._snapshots[-1].date

    def improvement_opportunities(self) -> list[str]:
        """Findings read off the latest grid: weak quadrant and competitor gaps."""
        grid = self.latest_grid()
        if not grid:
            return []

        opportunities = []
        quadrant, weak_count = _weakest_quadrant(grid)
        if quadrant and weak_count:
            opportunities.append(
                f"Optimize for {weak_count} underperforming grid points in the {quadrant} area"
            )

        with_competitors = [p for p in grid if p.competitors]
        gaps = sum(
            1 for p in with_competitors
            if all(c.rank > TOP_THREE for c in p.competitors)
        )
        if gaps:
            opportunities.append(
                f"Target competitor weak spots at {gaps} grid points with no competitor in the top 3"
            )
        return opportunities

    def summary(self) -> dict[str, Any]:
        return {
            "total_days": len(self._snapshots),
            "trend_direction": self.trend_direction(),
            "best_performing_day": self.best_performing_day(),
            "improvement_opportunities": self.improvement_opportunities(),
        }

    def time_lapse_frames(self) -> list[dict[str, Any]]:
        """One frame per snapshot, for GIF/time-lapse renderers."""
        frames = []
        for snap in self._snapshots:
            amr = snap.metrics.average_map_rank
            frames.append({
                "date": snap.date.isoformat(),
                "average_rank": amr if is_available(amr) else None,
                "share_of_voice": snap.metrics.share_of_local_voice,
                "top_three_count": snap.metrics.top_three_count,
                "ranks": [p.rank for p in snap.grid],
            })
        return frames


def _weakest_quadrant(grid: Sequence[GridPoint]) -> tuple[Optional[str], int]:
    """Return the quadrant with the worst mean rank and its weak-point count.

    Rows grow northwards and columns eastwards; points on the centre row or
    column belong to no quadrant.
    """
    mid_row = (max(p.row for p in grid) + 1) // 2
    mid_col = (max(p.col for p in grid) + 1) // 2
    buckets: dict[str, list[int]] = {}
    for p in grid:
        if p.row == mid_row or p.col == mid_col:
            continue
        name = ("north" if p.row > mid_row else "south") + ("east" if p.col > mid_col else "west")
        buckets.setdefault(name, []).append(p.rank)
    if not buckets:
        return None, 0
    worst = max(buckets, key=lambda name: sum(buckets[name]) / len(buckets[name]))
    return worst, sum(1 for r in buckets[worst] if r > WEAK_RANK_THRESHOLD)
