# src/core/geo/__init__.py
"""
Гео-фильтр представления.
"""

from src.core.geo.region import GeoRegion, calculate_distance, validate_coordinates

__all__ = ["GeoRegion", "calculate_distance", "validate_coordinates"]
