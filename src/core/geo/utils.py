# src/core/geo/utils.py
"""
Геоточки и расстояние по дуге большого круга.
"""

from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel, Field

# Средний радиус Земли в метрах
EARTH_RADIUS_M = 6371000.0


class GeoPoint(BaseModel):
    """Координаты точки."""

    latitude: float = Field(..., ge=-90.0, le=90.0, description="Широта")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Долгота")


def distance_meters(a: Optional[GeoPoint], b: Optional[GeoPoint]) -> Optional[float]:
    """
    Расстояние между двумя точками в метрах (формула Haversine).
    Если хотя бы одна точка неизвестна, расстояние тоже неизвестно (None).
    """
    if a is None or b is None:
        return None

    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude)) *
         math.sin(dlon / 2) ** 2)

    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))
