"""Domain types shared by the geo-grid sampler, metrics, history, and reports."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union


class GridConfigError(ValueError):
    """Raised when grid dimensions or spacing are invalid."""


class EmptyGridError(ValueError):
    """Raised when a metric that divides by the point count receives no points."""


class HistoryOrderError(ValueError):
    """Raised when a history snapshot would break chronological order."""


class Unavailable:
    """Marker for a metric that has no data behind it.

    There is exactly one instance, :data:`UNAVAILABLE`.  It is falsy, renders
    as ``"N/A"`` and refuses numeric format specs so that it can never be
    printed as if it were a number.
    """

    _instance: Optional["Unavailable"] = None

    def __new__(cls) -> "Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __str__(self) -> str:
        return "N/A"

    def __format__(self, spec: str) -> str:
        if spec:
            raise TypeError("Unavailable metric cannot be formatted as " + repr(spec))
        return "N/A"

    def __reduce__(self):
        return (Unavailable, ())


UNAVAILABLE = Unavailable()

MaybeFloat = Union[float, Unavailable]


def is_available(value: Any) -> bool:
    """Return True when *value* is a real metric value rather than the sentinel."""
    return value is not UNAVAILABLE


def display_value(value: Any, fmt: str = "{:.1f}") -> str:
    """Render a metric for humans, mapping the sentinel to ``"N/A"``."""
    if value is UNAVAILABLE:
        return str(UNAVAILABLE)
    return fmt.format(value)


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair (grid centre)."""
    lat: float
    lng: float


@dataclass(frozen=True)
class Competitor:
    """A tracked competitor, identified by name within a session."""
    name: str


@dataclass(frozen=True)
class Keyword:
    """Externally supplied keyword performance."""
    term: str
    avg_rank: float
    visibility: float


@dataclass(frozen=True)
class CompetitorSample:
    """One competitor's sampled rank and ranking factors at a grid point."""
    name: str
    rank: int  # 1-20
    proximity: float  # 0-10
    prominence: float  # 0-10
    relevance: float  # 0-10

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rank": self.rank,
            "factors": {
                "proximity": self.proximity,
                "prominence": self.prominence,
                "relevance": self.relevance,
            },
        }


@dataclass(frozen=True)
class GridPoint:
    """A sampled location in the geo-grid."""
    row: int
    col: int
    lat: float
    lng: float
    rank: int  # 1-20, lower is better
    visible: bool
    competitors: tuple[CompetitorSample, ...] = ()

    @property
    def point_id(self) -> str:
        return f"{self.row}-{self.col}"

    def competitor(self, name: str) -> Optional[CompetitorSample]:
        for sample in self.competitors:
            if sample.name == name:
                return sample
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.point_id,
            "row": self.row,
            "col": self.col,
            "lat": self.lat,
            "lng": self.lng,
            "rank": self.rank,
            "visible": self.visible,
            "competitors": [c.to_dict() for c in self.competitors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GridPoint":
        samples = []
        for comp in data.get("competitors", []):
            factors = comp.get("factors", {})
            samples.append(CompetitorSample(
                name=comp["name"],
                rank=int(comp["rank"]),
                proximity=float(factors.get("proximity", 0.0)),
                prominence=float(factors.get("prominence", 0.0)),
                relevance=float(factors.get("relevance", 0.0)),
            ))
        return cls(
            row=int(data["row"]),
            col=int(data["col"]),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            rank=int(data["rank"]),
            visible=bool(data["visible"]),
            competitors=tuple(samples),
        )


@dataclass(frozen=True)
class MetricsSnapshot:
    """Derived metrics for one grid."""
    average_map_rank: MaybeFloat
    share_of_local_voice: float
    top_three_count: int
    total_points: int
    visible_points: int
    percentile: str

    @property
    def visibility_score(self) -> tuple[int, int]:
        """Top-three appearances out of total points."""
        return self.top_three_count, self.total_points

    def to_dict(self) -> dict[str, Any]:
        return {
            "average_map_rank": (
                self.average_map_rank if is_available(self.average_map_rank) else None
            ),
            "share_of_local_voice": self.share_of_local_voice,
            "top_three_count": self.top_three_count,
            "total_points": self.total_points,
            "visible_points": self.visible_points,
            "percentile": self.percentile,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetricsSnapshot":
        amr = data.get("average_map_rank")
        return cls(
            average_map_rank=UNAVAILABLE if amr is None else float(amr),
            share_of_local_voice=float(data["share_of_local_voice"]),
            top_three_count=int(data["top_three_count"]),
            total_points=int(data["total_points"]),
            visible_points=int(data["visible_points"]),
            percentile=data["percentile"],
        )


@dataclass(frozen=True)
class CompetitorMetrics:
    """Aggregate of one competitor's samples across a grid."""
    name: str
    average_rank: MaybeFloat
    visibility: int
    sample_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "average_rank": display_value(self.average_rank),
            "visibility": self.visibility,
        }


@dataclass(frozen=True)
class HistorySnapshot:
    """One day of geo-grid history."""
    date: date
    grid: tuple[GridPoint, ...]
    metrics: MetricsSnapshot


class RecommendationCategory(str, Enum):
    OPTIMIZATION = "optimization"
    COMPETITION = "competition"
    KEYWORDS = "keywords"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Recommendation:
    """An actionable finding produced from grid, competitor, and keyword data."""
    category: RecommendationCategory
    priority: Priority
    title: str
    description: str
    impact: str

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.category.value,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
        }


@dataclass
class ShareLink:
    """A public link to a report payload.

    Expiry is data; :meth:`is_expired` checks it at read time.
    """
    id: str
    url: str
    report_data: Any
    created_at: datetime
    expires_at: datetime
    views: int = 0
    is_active: bool = True

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_live(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)


DEFAULT_WIDGET_COLORS = ("#ff4444", "#ffaa44", "#44ff44")


@dataclass
class WidgetStyling:
    theme: str = "professional"
    colors: list[str] = field(default_factory=lambda: list(DEFAULT_WIDGET_COLORS))
    show_legend: bool = True
    show_metrics: bool = True


@dataclass
class WidgetConfig:
    """Embeddable geo-grid widget descriptor."""
    id: str
    embed_reference: str
    grid_data: Any
    styling: WidgetStyling
    created_at: datetime
    update_frequency: str = "daily"
    auto_update: bool = True
