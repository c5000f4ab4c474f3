"""Recommendation engine — turns grid, competitor, and keyword metrics into findings."""

import logging
from typing import Optional, Sequence

from heatmappro.modules.geo_grid.entities import (
    CompetitorMetrics,
    GridPoint,
    Keyword,
    Priority,
    Recommendation,
    RecommendationCategory,
    is_available,
)

logger = logging.getLogger(__name__)

WEAK_RANK_THRESHOLD = 10
# Weak points must exceed 3/10 of the grid.
WEAK_POINT_NUMERATOR = 3
WEAK_POINT_DENOMINATOR = 10
STRONG_COMPETITOR_RANK = 5
UNDERPERFORMING_KEYWORD_RANK = 8


class RecommendationEngine:
    """Evaluate the geo-grid rules and return recommendations.

    Rules are independent and the output keeps their evaluation order
    (optimization, competition, keywords) regardless of priority.
    """

    def __init__(self) -> None:
        self.last_recommendations: list[Recommendation] = []

    def generate_recommendations(
        self,
        grid: Sequence[GridPoint],
        competitor_metrics: Sequence[CompetitorMetrics],
        keyword_metrics: Sequence[Keyword],
    ) -> list[Recommendation]:
        recommendations: list[Recommendation] = []
        for rule in (
            self._coverage_rule(grid),
            self._competition_rule(competitor_metrics),
            self._keyword_rule(keyword_metrics),
        ):
            if rule is not None:
                recommendations.append(rule)

        self.last_recommendations = recommendations
        logger.info("Generated %d geo-grid recommendations", len(recommendations))
        return recommendations

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    @staticmethod
    def _coverage_rule(grid: Sequence[GridPoint]) -> Optional[Recommendation]:
        weak_points = sum(1 for p in grid if p.rank > WEAK_RANK_THRESHOLD)
        if weak_points * WEAK_POINT_DENOMINATOR <= len(grid) * WEAK_POINT_NUMERATOR:
            return None
        return Recommendation(
            category=RecommendationCategory.OPTIMIZATION,
            priority=Priority.HIGH,
            title="Optimize for Geographic Coverage",
            description=(
                f"{weak_points} grid points show poor visibility. "
                "Focus on local citations and geo-targeted content."
            ),
            impact="Could improve SoLV by 15-25%",
        )

    @staticmethod
    def _competition_rule(
        competitor_metrics: Sequence[CompetitorMetrics],
    ) -> Optional[Recommendation]:
        strong = [
            cm for cm in competitor_metrics
            if is_available(cm.average_rank) and cm.average_rank < STRONG_COMPETITOR_RANK
        ]
        if not strong:
            return None
        # min() keeps the first of equal ranks
        leader = min(strong, key=lambda cm: cm.average_rank)
        return Recommendation(
            category=RecommendationCategory.COMPETITION,
            priority=Priority.MEDIUM,
            title="Competitor Analysis Required",
            description=(
                f"{leader.name} dominates {leader.visibility} grid points. "
                "Analyze their local SEO strategy."
            ),
            impact="Potential 10-20% SoLV increase",
        )

    @staticmethod
    def _keyword_rule(keyword_metrics: Sequence[Keyword]) -> Optional[Recommendation]:
        for keyword in keyword_metrics:
            if keyword.avg_rank > UNDERPERFORMING_KEYWORD_RANK:
                return Recommendation(
                    category=RecommendationCategory.KEYWORDS,
                    priority=Priority.MEDIUM,
                    title="Keyword Optimization Needed",
                    description=(
                        f'Keyword "{keyword.term}" is underperforming. '
                        "Consider long-tail variations."
                    ),
                    impact="Could improve rankings by 2-5 positions",
                )
        return None
