# src/core/geo/__init__.py
"""
Geo-модуль.
Haversine-близость к диспансеру и клиент сервиса маршрутов.
"""

from src.core.geo.routing import RouteSummary, RoutingService
from src.core.geo.utils import haversine_distance_meters, is_within_threshold

__all__ = [
    "RouteSummary",
    "RoutingService",
    "haversine_distance_meters",
    "is_within_threshold",
]
