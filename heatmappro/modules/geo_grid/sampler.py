"""Geo-grid sampler — builds the spatial sample grid used by every report.

Positions are derived from the grid centre and spacing only; rank,
visibility, and competitor factors come from an injected random source so a
seeded :class:`random.Random` reproduces a grid exactly.
"""

import logging
import math
import random
import re
from typing import Iterable, Optional, Protocol, Sequence

from heatmappro.modules.geo_grid.entities import (
    Competitor,
    CompetitorSample,
    GeoPoint,
    GridConfigError,
    GridPoint,
)

logger = logging.getLogger(__name__)

MAX_RANK = 20
MAX_FACTOR_SCORE = 10.0
DEFAULT_VISIBILITY_PROBABILITY = 0.7

# Kansas City, the default demo location.
DEFAULT_CENTER = GeoPoint(39.0997, -94.5786)
DEFAULT_SPACING = 0.01

# Grid sizes offered by the tracker UI.
GRID_SIZES = ["3x3", "5x5", "7x7", "9x9", "11x11", "13x13", "15x15", "17x17", "21x21"]

_GRID_SIZE_RE = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")


class RandomSource(Protocol):
    """Anything with a ``random()`` method returning a float in [0, 1)."""

    def random(self) -> float:
        ...


def parse_grid_size(descriptor: str) -> tuple[int, int]:
    """Parse an ``"RxC"`` descriptor into ``(rows, cols)``.

    Examples:
        >>> parse_grid_size("7x7")
        (7, 7)
        >>> parse_grid_size("3x5")
        (3, 5)
    """
    match = _GRID_SIZE_RE.match(descriptor or "")
    if not match:
        raise GridConfigError(f"Invalid grid size descriptor: {descriptor!r}. Expected 'RxC'.")
    rows, cols = int(match.group(1)), int(match.group(2))
    if rows < 1 or cols < 1:
        raise GridConfigError(f"Grid dimensions must be positive, got {descriptor!r}.")
    return rows, cols


def format_grid_size(rows: int, cols: int) -> str:
    return f"{rows}x{cols}"


def grid_coordinate(
    center: GeoPoint,
    spacing: float,
    rows: int,
    cols: int,
    row: int,
    col: int,
) -> tuple[float, float]:
    """Return ``(lat, lng)`` of cell (row, col) in a grid centred on *center*."""
    lat = center.lat + (row - rows // 2) * spacing
    lng = center.lng + (col - cols // 2) * spacing
    return lat, lng


def validate_dimensions(rows: int, cols: int, spacing: float = 1.0) -> None:
    """Reject non-positive or non-integer grid dimensions."""
    for label, value in (("rows", rows), ("cols", cols)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise GridConfigError(f"Grid {label} must be an integer, got {value!r}.")
        if value < 1:
            raise GridConfigError(f"Grid {label} must be >= 1, got {value}.")
    if not isinstance(spacing, (int, float)) or math.isnan(spacing) or spacing <= 0:
        raise GridConfigError(f"Grid spacing must be > 0, got {spacing!r}.")


class GridSampler:
    """Generate geo-grids of ranked sample points.

    Usage::

        sampler = GridSampler(random.Random(42))
        grid = sampler.generate_grid(
            7, 7, GeoPoint(39.0997, -94.5786), 0.01, [Competitor("Acme")],
        )
    """

    def __init__(
        self,
        random_source: Optional[RandomSource] = None,
        visibility_probability: float = DEFAULT_VISIBILITY_PROBABILITY,
    ):
        if not 0.0 <= visibility_probability <= 1.0:
            raise GridConfigError(
                f"visibility_probability must be within [0, 1], got {visibility_probability}."
            )
        self._random = random_source if random_source is not None else random.SystemRandom()
        self.visibility_probability = visibility_probability

    @property
    def random_source(self) -> RandomSource:
        return self._random

    # ------------------------------------------------------------------
    # Sampling primitives
    # ------------------------------------------------------------------

    def sample_rank(self) -> int:
        """Uniform integer rank in [1, 20]."""
        return min(MAX_RANK, math.floor(self._random.random() * MAX_RANK) + 1)

    def sample_visibility(self, probability: Optional[float] = None) -> bool:
        p = self.visibility_probability if probability is None else probability
        return self._random.random() < p

    def sample_factor(self) -> float:
        return self._random.random() * MAX_FACTOR_SCORE

    def sample_competitors(self, competitors: Iterable[Competitor]) -> tuple[CompetitorSample, ...]:
        samples = []
        for comp in competitors:
            rank = self.sample_rank()
            samples.append(CompetitorSample(
                name=comp.name,
                rank=rank,
                proximity=self.sample_factor(),
                prominence=self.sample_factor(),
                relevance=self.sample_factor(),
            ))
        return tuple(samples)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_grid(
        self,
        rows: int,
        cols: int,
        center: GeoPoint,
        spacing: float,
        competitors: Sequence[Competitor] = (),
    ) -> list[GridPoint]:
        """Return ``rows * cols`` points in row-major order.

        Raises:
            GridConfigError: if rows/cols are not positive integers or the
                spacing is not positive.  Nothing is sampled in that case.
        """
        try:
            validate_dimensions(rows, cols, spacing)
        except GridConfigError as exc:
            logger.warning("Rejected grid request: %s", exc)
            raise

        points: list[GridPoint] = []
        for i in range(rows):
            for j in range(cols):
                lat, lng = grid_coordinate(center, spacing, rows, cols, i, j)
                rank = self.sample_rank()
                visible = self.sample_visibility()
                points.append(GridPoint(
                    row=i,
                    col=j,
                    lat=lat,
                    lng=lng,
                    rank=rank,
                    visible=visible,
                    competitors=self.sample_competitors(competitors),
                ))

        logger.debug(
            "Generated %dx%d grid around (%.4f, %.4f) with %d competitors",
            rows, cols, center.lat, center.lng, len(competitors),
        )
        return points

    def generate_from_descriptor(
        self,
        grid_size: str,
        center: GeoPoint,
        spacing: float,
        competitors: Sequence[Competitor] = (),
    ) -> list[GridPoint]:
        """Same as :meth:`generate_grid` but takes an ``"RxC"`` descriptor."""
        rows, cols = parse_grid_size(grid_size)
        return self.generate_grid(rows, cols, center, spacing, competitors)
