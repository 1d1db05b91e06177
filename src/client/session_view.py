# src/client/session_view.py
"""
Клиентское зеркало реестра для одного зрителя.

Строится из событий протокола, вычисляет близость к диспансеру,
фронтовые уведомления о прибытии и итоги маршрутов.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from src.common.constants import DeviceType, ProximityState, RelayEvent
from src.common.exceptions import TransientComputationError
from src.common.logger import log_error, log_warning
from src.core.geo.routing import RouteSummary
from src.core.geo.utils import is_within_threshold


class RouteProvider(Protocol):
    """Внешний сервис маршрутов."""

    async def calculate_route(
        self,
        origin_lat: float,
        origin_lon: float,
        dest_lat: float,
        dest_lon: float,
    ) -> RouteSummary: ...


@dataclass
class AmbulanceView:
    """Локальное представление одной скорой."""
    id: str
    number: int
    latitude: float
    longitude: float
    is_at_dispensary: bool
    previously_at_dispensary: bool
    device_type: DeviceType = DeviceType.BROWSER
    battery_level: str | float = "Unknown"
    speed: float = 0.0
    distance_km: float | None = None
    time_minutes: float | None = None
    state: ProximityState = ProximityState.UNKNOWN

    @property
    def position(self) -> tuple[float, float]:
        return self.latitude, self.longitude


@dataclass(frozen=True)
class ArrivalNotice:
    """Скорая пересекла порог близости снаружи внутрь."""
    device_id: str
    number: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ClientSessionView:
    """
    Зеркало реестра на стороне зрителя.

    Состояния устройства: UNKNOWN -> EN_ROUTE <-> AT_DISPENSARY -> REMOVED.
    Номер скорой выдаётся при первом появлении и не переиспользуется.
    Маршрут: последний запрос побеждает, устаревший ответ отбрасывается
    по несовпадению точек маршрута.
    """

    def __init__(
        self,
        fixed_lat: float,
        fixed_lon: float,
        threshold_meters: float,
        router: RouteProvider | None = None,
        on_arrival: Callable[[ArrivalNotice], None] | None = None,
    ) -> None:
        self.fixed_lat = fixed_lat
        self.fixed_lon = fixed_lon
        self.threshold_meters = threshold_meters
        self.client_id: str | None = None

        self._router = router
        self._on_arrival = on_arrival
        self._views: dict[str, AmbulanceView] = {}
        self._next_number = 0
        self._route_waypoints: dict[str, tuple[float, float]] = {}
        self._route_tasks: set[asyncio.Task] = set()

        self.arrivals: list[ArrivalNotice] = []
        self.notifications: list[dict[str, Any]] = []

    # === АГРЕГАТЫ ===

    @property
    def views(self) -> dict[str, AmbulanceView]:
        return dict(self._views)

    def get(self, device_id: str) -> AmbulanceView | None:
        return self._views.get(device_id)

    @property
    def online_count(self) -> int:
        return len(self._views)

    @property
    def at_dispensary_count(self) -> int:
        return sum(1 for view in self._views.values() if view.is_at_dispensary)

    # === СОБЫТИЯ ===

    async def handle_event(self, message: dict[str, Any]) -> None:
        """Применить одно сообщение сервера."""
        event = message.get("event")

        if event == RelayEvent.CONNECTION_ESTABLISHED.value:
            self.reset()
            self.client_id = message.get("client_id")
        elif event == RelayEvent.LOCATION_UPDATE.value:
            self.apply_location_update(message)
        elif event == RelayEvent.DEVICE_REMOVED.value:
            self.apply_device_removed(message.get("id"))
        elif event == RelayEvent.NOTIFICATION_CREATED.value:
            self.notifications.append(message)
        elif event == RelayEvent.PONG.value:
            pass
        else:
            await log_warning(f"Неизвестное событие от сервера: {event!r}")

    def reset(self) -> None:
        """
        Сбросить зеркало перед повтором снимка на новом соединении.
        Счётчик номеров не сбрасывается.
        """
        for task in self._route_tasks:
            task.cancel()
        self._route_tasks.clear()
        self._route_waypoints.clear()
        self._views.clear()

    def apply_location_update(self, payload: dict[str, Any]) -> AmbulanceView:
        """Первое появление создаёт вид; последующие обновляют позицию и близость."""
        device_id = payload["id"]
        lat = float(payload["latitude"])
        lon = float(payload["longitude"])
        at_dispensary = is_within_threshold(lat, lon, self.fixed_lat, self.fixed_lon, self.threshold_meters)

        view = self._views.get(device_id)
        if view is None:
            self._next_number += 1
            # Без уведомления при первом появлении
            view = AmbulanceView(
                id=device_id,
                number=self._next_number,
                latitude=lat,
                longitude=lon,
                is_at_dispensary=at_dispensary,
                previously_at_dispensary=at_dispensary,
            )
            self._views[device_id] = view
        else:
            view.latitude = lat
            view.longitude = lon
            view.is_at_dispensary = at_dispensary
            if at_dispensary and not view.previously_at_dispensary:
                self._raise_arrival(view)
            view.previously_at_dispensary = at_dispensary

        view.state = ProximityState.AT_DISPENSARY if at_dispensary else ProximityState.EN_ROUTE
        if payload.get("deviceType"):
            view.device_type = DeviceType(payload["deviceType"])
        if payload.get("batteryLevel") is not None:
            view.battery_level = payload["batteryLevel"]
        if payload.get("speed") is not None:
            view.speed = float(payload["speed"])

        self._request_route(view)
        return view

    def apply_device_removed(self, device_id: str | None) -> bool:
        """Перевести устройство в REMOVED и освободить его ресурсы."""
        view = self._views.pop(device_id, None) if device_id else None
        if view is None:
            return False
        view.state = ProximityState.REMOVED
        self._route_waypoints.pop(device_id, None)
        return True

    def _raise_arrival(self, view: AmbulanceView) -> None:
        notice = ArrivalNotice(device_id=view.id, number=view.number)
        self.arrivals.append(notice)
        if self._on_arrival is not None:
            self._on_arrival(notice)

    # === МАРШРУТЫ ===

    def _request_route(self, view: AmbulanceView) -> None:
        if self._router is None:
            return
        waypoints = view.position
        self._route_waypoints[view.id] = waypoints
        task = asyncio.create_task(self._compute_route(view.id, waypoints))
        self._route_tasks.add(task)
        task.add_done_callback(self._route_tasks.discard)

    async def _compute_route(self, device_id: str, waypoints: tuple[float, float]) -> None:
        try:
            summary = await self._router.calculate_route(
                waypoints[0], waypoints[1], self.fixed_lat, self.fixed_lon,
            )
        except TransientComputationError as e:
            # Прежний итог маршрута остаётся на экране
            await log_error(f"Маршрут для {device_id} не рассчитан: {e}")
            return

        view = self._views.get(device_id)
        if view is None or self._route_waypoints.get(device_id) != waypoints:
            return
        view.distance_km = summary.distance_km
        view.time_minutes = summary.time_minutes

    async def wait_for_routes(self) -> None:
        """Дождаться всех запущенных расчётов маршрутов."""
        while self._route_tasks:
            await asyncio.gather(*list(self._route_tasks), return_exceptions=True)
