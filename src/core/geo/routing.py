# src/core/geo/routing.py
"""
Клиент внешнего сервиса маршрутов (OSRM-совместимый HTTP API).
Для пары точек (origin, destination) возвращает дорожное расстояние и время.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from src.common.exceptions import TransientComputationError


@dataclass(frozen=True)
class RouteSummary:
    """Итог маршрута от сервиса роутинга."""
    total_distance_meters: float
    total_time_seconds: float

    @property
    def distance_km(self) -> float:
        return self.total_distance_meters / 1000

    @property
    def time_minutes(self) -> float:
        return self.total_time_seconds / 60


class RoutingService:
    """
    Сервис расчёта маршрута через OSRM.

    Любая ошибка (сеть, HTTP-статус, пустой ответ) превращается в
    TransientComputationError, вызывающий код сохраняет прежний итог.
    """

    def __init__(
        self,
        base_url: str | None = None,
        profile: str = "driving",
        timeout: float = 10.0,
    ) -> None:
        """
        Args:
            base_url: Адрес OSRM (берётся из конфига если None)
            profile: Профиль маршрута
            timeout: Таймаут HTTP-запроса в секундах
        """
        if base_url is None:
            from src.config import settings
            base_url = settings.routing.BASE_URL
            profile = settings.routing.PROFILE
            timeout = settings.routing.TIMEOUT_SECONDS

        self._base_url = base_url.rstrip("/")
        self._profile = profile
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    def _route_url(
        self,
        origin_lat: float,
        origin_lon: float,
        dest_lat: float,
        dest_lon: float,
    ) -> str:
        # OSRM принимает координаты в порядке lon,lat
        coords = f"{origin_lon},{origin_lat};{dest_lon},{dest_lat}"
        return f"{self._base_url}/route/v1/{self._profile}/{coords}"

    async def calculate_route(
        self,
        origin_lat: float,
        origin_lon: float,
        dest_lat: float,
        dest_lon: float,
    ) -> RouteSummary:
        """
        Рассчитывает маршрут между двумя точками.

        Returns:
            Итог маршрута (метры, секунды)

        Raises:
            TransientComputationError: сервис недоступен или маршрут не найден
        """
        try:
            response = await self._client.get(
                self._route_url(origin_lat, origin_lon, dest_lat, dest_lon),
                params={"overview": "false", "alternatives": "false"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransientComputationError(f"Сервис маршрутов недоступен: {e}") from e

        try:
            routes = data.get("routes") or []
            code = data.get("code")
        except AttributeError as e:
            raise TransientComputationError(f"Некорректный ответ сервиса маршрутов: {data!r}") from e

        if code != "Ok" or not routes:
            raise TransientComputationError(
                f"Маршрут не найден: ({origin_lat},{origin_lon}) -> ({dest_lat},{dest_lon}), "
                f"code={code}"
            )

        try:
            route = routes[0]
            return RouteSummary(
                total_distance_meters=float(route["distance"]),
                total_time_seconds=float(route["duration"]),
            )
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise TransientComputationError(f"Некорректный маршрут в ответе: {e}") from e
