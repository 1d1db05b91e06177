# src/core/geo/utils.py
"""
Геометрия на сфере: расстояние Haversine и проверка порога близости.
Единственная метрика близости (дорожное расстояние не используется).
"""

from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6371000.0


def haversine_distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Вычисляет расстояние между двумя точками (в метрах) по формуле Haversine.
    """
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def is_within_threshold(
    lat: float,
    lon: float,
    fixed_lat: float,
    fixed_lon: float,
    threshold_meters: float,
) -> bool:
    """Точка находится в пределах порога (граница включительно)."""
    return haversine_distance_meters(lat, lon, fixed_lat, fixed_lon) <= threshold_meters
