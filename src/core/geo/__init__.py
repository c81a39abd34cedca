# src/core/geo/__init__.py
"""
Геоданные: точки, расстояния и определение текущего местоположения.
"""

from src.core.geo.utils import GeoPoint, distance_meters
from src.core.geo.service import LocationResolver, build_location_resolver

__all__ = [
    "GeoPoint",
    "distance_meters",
    "LocationResolver",
    "build_location_resolver",
]
