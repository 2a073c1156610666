"""Landscape evolution on site graphs: stream-power erosion balanced against uplift."""

__version__ = "0.1.0"
