"""Shared pytest fixtures for HeatMapPro geo-grid tests."""

import random
import sys
from pathlib import Path

import pytest
import yaml

# Ensure project root is on sys.path so 'heatmappro' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


class ReplaySource:
    """Random source that replays a fixed sequence of draws, cycling if needed."""

    def __init__(self, values):
        self._values = list(values)
        self._index = 0
        self.calls = 0

    def random(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        self.calls += 1
        return value


@pytest.fixture(autouse=True)
def _reset_db_engine():
    """Autouse fixture: reset the global DB engine before and after every test."""
    from heatmappro.database import reset_engine
    reset_engine()
    yield
    reset_engine()


@pytest.fixture()
def test_db():
    """Provide an in-memory SQLite database with all tables created."""
    from heatmappro.database import init_db
    db_url = "sqlite:///:memory:"
    init_db(database_url=db_url, echo=False)
    yield db_url


@pytest.fixture()
def seeded_random():
    return random.Random(1234)


@pytest.fixture()
def replay_source():
    """Factory for scripted random sources."""
    return ReplaySource


@pytest.fixture()
def make_point():
    """Factory building a GridPoint with only the fields a test cares about."""
    from heatmappro.modules.geo_grid.entities import GridPoint

    def _make(rank=5, visible=True, row=0, col=0, competitors=()):
        return GridPoint(
            row=row, col=col, lat=float(row), lng=float(col),
            rank=rank, visible=visible, competitors=tuple(competitors),
        )
    return _make


@pytest.fixture()
def make_grid(make_point):
    """Build a single-row grid from (rank, visible) pairs."""
    def _make(specs):
        return [make_point(rank=r, visible=v, col=i) for i, (r, v) in enumerate(specs)]
    return _make


@pytest.fixture()
def settings_file(tmp_path):
    """Write a settings.yaml into tmp_path pointing the database at tmp_path."""
    config = {
        "app": {"name": "HeatMapPro Geo-Grid"},
        "database": {"url": "sqlite:///" + str(tmp_path / "heatmappro.db")},
        "business": {
            "name": "Test Cleaning Co",
            "competitors": ["Alpha Maids", "Beta Clean"],
            "keywords": [
                {"term": "house cleaning", "avg_rank": 4.0, "visibility": 70.0},
                {"term": "deep cleaning", "avg_rank": 9.5, "visibility": 30.0},
            ],
        },
        "grid": {"default_size": "5x5", "spacing": 0.01},
        "share": {"base_url": "https://share.example.com", "expiration_days": 14},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return path
