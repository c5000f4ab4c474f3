"""Settings loading — ``config/settings.yaml`` merged over built-in defaults."""

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from heatmappro.modules.geo_grid.entities import DEFAULT_WIDGET_COLORS, GeoPoint, WidgetStyling

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"

DEFAULTS: dict[str, Any] = {
    "app": {
        "name": "HeatMapPro Geo-Grid",
    },
    "database": {
        "url": None,
        "echo": False,
    },
    "business": {
        "name": "Business Name",
        "competitors": [],
        "keywords": [],
    },
    "grid": {
        "default_size": "7x7",
        "center": {"lat": 39.0997, "lng": -94.5786},
        "spacing": 0.01,
        "visibility_probability": 0.7,
    },
    "share": {
        "base_url": "https://heatmappro.com",
        "expiration_days": 30,
    },
    "widget": {
        "theme": "professional",
        "colors": list(DEFAULT_WIDGET_COLORS),
        "show_legend": True,
        "show_metrics": True,
        "update_frequency": "daily",
    },
    "branding": {
        "white_label": True,
        "logo": None,
        "name": "Client Name",
        "agency": "Your Agency",
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "HEATMAPPRO_DATABASE_URL": ("database", "url"),
    "HEATMAPPRO_SHARE_BASE_URL": ("share", "base_url"),
    "HEATMAPPRO_BUSINESS_NAME": ("business", "name"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass
class GridSettings:
    default_size: str
    center: GeoPoint
    spacing: float
    visibility_probability: float


@dataclass
class ShareSettings:
    base_url: str
    expiration_days: int


@dataclass
class Settings:
    """Typed view over the merged settings dict."""
    raw: dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULTS))

    @property
    def app_name(self) -> str:
        return self.raw["app"]["name"]

    @property
    def business_name(self) -> str:
        return self.raw["business"]["name"]

    @property
    def grid(self) -> GridSettings:
        cfg = self.raw["grid"]
        return GridSettings(
            default_size=str(cfg["default_size"]),
            center=GeoPoint(float(cfg["center"]["lat"]), float(cfg["center"]["lng"])),
            spacing=float(cfg["spacing"]),
            visibility_probability=float(cfg["visibility_probability"]),
        )

    @property
    def share(self) -> ShareSettings:
        cfg = self.raw["share"]
        return ShareSettings(base_url=cfg["base_url"], expiration_days=int(cfg["expiration_days"]))

    @property
    def widget_styling(self) -> WidgetStyling:
        cfg = self.raw["widget"]
        return WidgetStyling(
            theme=cfg["theme"],
            colors=list(cfg["colors"]),
            show_legend=bool(cfg["show_legend"]),
            show_metrics=bool(cfg["show_metrics"]),
        )

    @property
    def branding(self) -> dict[str, Any]:
        cfg = self.raw["branding"]
        return {"logo": cfg.get("logo"), "name": cfg.get("name"), "agency": cfg.get("agency")}


def load_settings(config_path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Load YAML settings, fill gaps from defaults, then apply env overrides."""
    config_file = Path(config_path)
    file_cfg: dict[str, Any] = {}
    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as fh:
            file_cfg = yaml.safe_load(fh) or {}
        if not isinstance(file_cfg, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping at top level.")
        logger.info("Configuration loaded from %s", config_file)
    else:
        logger.warning("Config file not found: %s, using defaults.", config_file)

    merged = _deep_merge(DEFAULTS, file_cfg)
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            merged.setdefault(section, {})[key] = value
            logger.debug("Setting %s.%s overridden by %s", section, key, env_name)
    return Settings(raw=merged)
