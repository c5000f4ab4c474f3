"""HeatMapPro geo-grid analytics: grid sampling, ranking metrics, and report assembly."""

__version__ = "1.0.0"
