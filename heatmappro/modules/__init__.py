"""Feature modules for HeatMapPro."""
