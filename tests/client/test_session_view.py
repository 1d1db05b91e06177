# tests/client/test_session_view.py
"""
Тесты клиентского зеркала реестра (src/client/session_view.py).
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.client.session_view import ArrivalNotice, ClientSessionView
from src.common.constants import DeviceType, ProximityState
from src.common.exceptions import TransientComputationError
from src.core.geo.routing import RouteSummary
from tests.helpers import (
    DISPENSARY_LAT,
    DISPENSARY_LON,
    FAR_POINT,
    NEAR_POINT,
    THRESHOLD_METERS,
)


def _update(device_id: str, point: tuple[float, float], **extra) -> dict:
    return {"event": "location-update", "id": device_id, "latitude": point[0], "longitude": point[1], **extra}


@pytest.fixture
def view() -> ClientSessionView:
    return ClientSessionView(DISPENSARY_LAT, DISPENSARY_LON, THRESHOLD_METERS)


class TestArrivals:
    """Тесты уведомлений о прибытии."""

    @pytest.mark.asyncio
    async def test_first_sight_inside_is_silent(self, view: ClientSessionView) -> None:
        """Первое появление у диспансера не порождает уведомления."""
        await view.handle_event(_update("a", NEAR_POINT))

        assert view.arrivals == []
        assert view.get("a").is_at_dispensary is True
        assert view.get("a").state is ProximityState.AT_DISPENSARY

    @pytest.mark.asyncio
    async def test_leave_and_return_gives_one_arrival(self, view: ClientSessionView) -> None:
        await view.handle_event(_update("a", NEAR_POINT))
        await view.handle_event(_update("a", FAR_POINT))
        assert view.get("a").state is ProximityState.EN_ROUTE

        await view.handle_event(_update("a", NEAR_POINT))

        assert len(view.arrivals) == 1
        assert view.arrivals[0].device_id == "a"
        assert view.arrivals[0].number == 1

    @pytest.mark.asyncio
    async def test_edge_triggered(self, view: ClientSessionView) -> None:
        """out, in, in, out, in: ровно два уведомления."""
        for point in (FAR_POINT, NEAR_POINT, NEAR_POINT, FAR_POINT, NEAR_POINT):
            await view.handle_event(_update("a", point))

        assert len(view.arrivals) == 2

    @pytest.mark.asyncio
    async def test_on_arrival_callback(self) -> None:
        callback = MagicMock()
        view = ClientSessionView(DISPENSARY_LAT, DISPENSARY_LON, THRESHOLD_METERS, on_arrival=callback)

        await view.handle_event(_update("a", FAR_POINT))
        await view.handle_event(_update("a", NEAR_POINT))

        callback.assert_called_once()
        notice = callback.call_args.args[0]
        assert isinstance(notice, ArrivalNotice)
        assert notice.device_id == "a"


class TestCountsAndNumbers:
    """Тесты агрегатов и номеров скорых."""

    @pytest.mark.asyncio
    async def test_counts(self, view: ClientSessionView) -> None:
        await view.handle_event(_update("a", NEAR_POINT))
        await view.handle_event(_update("b", FAR_POINT))
        await view.handle_event(_update("c", NEAR_POINT))

        assert view.online_count == 3
        assert view.at_dispensary_count == 2

        await view.handle_event({"event": "device-removed", "id": "a"})

        assert view.online_count == 2
        assert view.at_dispensary_count == 1

    @pytest.mark.asyncio
    async def test_numbers_sequential_and_not_reused(self, view: ClientSessionView) -> None:
        await view.handle_event(_update("a", FAR_POINT))
        await view.handle_event(_update("b", FAR_POINT))
        await view.handle_event({"event": "device-removed", "id": "a"})
        await view.handle_event(_update("c", FAR_POINT))

        assert view.get("b").number == 2
        assert view.get("c").number == 3

    @pytest.mark.asyncio
    async def test_update_keeps_number(self, view: ClientSessionView) -> None:
        await view.handle_event(_update("a", FAR_POINT))
        await view.handle_event(_update("a", NEAR_POINT))

        assert view.get("a").number == 1
        assert view.online_count == 1

    @pytest.mark.asyncio
    async def test_optional_fields_applied(self, view: ClientSessionView) -> None:
        await view.handle_event(_update("a", FAR_POINT, deviceType="ESP32", batteryLevel="55", speed=12.0))

        ambulance = view.get("a")
        assert ambulance.device_type is DeviceType.ESP32
        assert ambulance.battery_level == "55"
        assert ambulance.speed == 12.0

    def test_remove_unknown_device(self, view: ClientSessionView) -> None:
        assert view.apply_device_removed("ghost") is False
        assert view.apply_device_removed(None) is False


class TestOtherEvents:
    """Тесты прочих событий сервера."""

    @pytest.mark.asyncio
    async def test_connection_established_resets_view(self, view: ClientSessionView) -> None:
        await view.handle_event(_update("a", FAR_POINT))

        await view.handle_event({"event": "connection-established", "client_id": "me"})

        assert view.client_id == "me"
        assert view.online_count == 0

        await view.handle_event(_update("a", FAR_POINT))
        assert view.get("a").number == 2

    @pytest.mark.asyncio
    async def test_notification_created_recorded(self, view: ClientSessionView) -> None:
        message = {"event": "notification-created", "deviceId": "esp32-1", "notification": {"message": "m"}}

        await view.handle_event(message)

        assert view.notifications == [message]

    @pytest.mark.asyncio
    async def test_unknown_event_ignored(self, view: ClientSessionView) -> None:
        await view.handle_event({"event": "teleport"})
        await view.handle_event({"event": "pong"})

        assert view.online_count == 0


class TestRoutes:
    """Тесты итогов маршрута."""

    @pytest.mark.asyncio
    async def test_route_summary_applied(self) -> None:
        router = MagicMock()
        router.calculate_route = AsyncMock(return_value=RouteSummary(8123.0, 900.0))
        view = ClientSessionView(DISPENSARY_LAT, DISPENSARY_LON, THRESHOLD_METERS, router=router)

        await view.handle_event(_update("a", FAR_POINT))
        await view.wait_for_routes()

        ambulance = view.get("a")
        assert ambulance.distance_km == pytest.approx(8.123)
        assert ambulance.time_minutes == pytest.approx(15.0)
        router.calculate_route.assert_awaited_once_with(FAR_POINT[0], FAR_POINT[1], DISPENSARY_LAT, DISPENSARY_LON)

    @pytest.mark.asyncio
    async def test_stale_route_discarded(self) -> None:
        """Ответ на устаревший запрос не перезаписывает итог более нового."""
        slow_started = asyncio.Event()
        release_slow = asyncio.Event()

        async def calculate_route(origin_lat, origin_lon, dest_lat, dest_lon):
            if (origin_lat, origin_lon) == FAR_POINT:
                slow_started.set()
                await release_slow.wait()
                return RouteSummary(9999.0, 9999.0)
            return RouteSummary(50.0, 60.0)

        router = MagicMock()
        router.calculate_route = calculate_route
        view = ClientSessionView(DISPENSARY_LAT, DISPENSARY_LON, THRESHOLD_METERS, router=router)

        await view.handle_event(_update("a", FAR_POINT))
        await slow_started.wait()
        await view.handle_event(_update("a", NEAR_POINT))
        await asyncio.sleep(0)
        release_slow.set()
        await view.wait_for_routes()

        ambulance = view.get("a")
        assert ambulance.distance_km == pytest.approx(0.05)
        assert ambulance.time_minutes == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_routing_failure_keeps_previous_summary(self) -> None:
        router = MagicMock()
        router.calculate_route = AsyncMock(side_effect=[
            RouteSummary(1000.0, 120.0),
            TransientComputationError("router down"),
        ])
        view = ClientSessionView(DISPENSARY_LAT, DISPENSARY_LON, THRESHOLD_METERS, router=router)

        await view.handle_event(_update("a", FAR_POINT))
        await view.wait_for_routes()
        await view.handle_event(_update("a", (12.88, 80.19)))
        await view.wait_for_routes()

        ambulance = view.get("a")
        assert ambulance.distance_km == pytest.approx(1.0)
        assert ambulance.time_minutes == pytest.approx(2.0)
        assert (ambulance.latitude, ambulance.longitude) == (12.88, 80.19)

    @pytest.mark.asyncio
    async def test_route_for_removed_device_dropped(self) -> None:
        release = asyncio.Event()

        async def calculate_route(*args):
            await release.wait()
            return RouteSummary(1.0, 1.0)

        router = MagicMock()
        router.calculate_route = calculate_route
        view = ClientSessionView(DISPENSARY_LAT, DISPENSARY_LON, THRESHOLD_METERS, router=router)

        await view.handle_event(_update("a", FAR_POINT))
        await view.handle_event({"event": "device-removed", "id": "a"})
        release.set()
        await view.wait_for_routes()

        assert view.get("a") is None
