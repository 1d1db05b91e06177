# src/services/relay/app.py
"""
FastAPI приложение релея позиций скорых.

WebSocket endpoints:
- /ws — интерактивные клиенты (браузеры)

REST endpoints (GET, параметры в query string):
- /api/device-location — позиция опрашивающего устройства
- /api/send-notification — поставить уведомление устройству
- /api/notifications — голова очереди уведомлений
- /api/notifications/acknowledge — подтвердить голову очереди
- /api/devices — снимок реестра
- /location — телеметрия без гарантий
- /health, /stats
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from fastapi import Depends, FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from src.common.constants import TypeMsg
from src.common.exceptions import NotFoundError, ValidationError
from src.common.logger import log_error, log_info, log_warning, setup_logging
from src.config import Settings, settings as default_settings
from src.core.devices import DeviceRegistry
from src.core.notifications import NotificationQueue
from src.services.relay.connection_manager import ConnectionManager
from src.services.relay.dependencies import get_protocol
from src.services.relay.protocol import BroadcastProtocol
from src.services.relay.schemas import HealthStatus, StatsResponse


SERVICE_NAME = "ambulance_relay"


# === ФОНОВЫЕ ЗАДАЧИ ===

async def sweep_idle_devices(
    protocol: BroadcastProtocol,
    max_idle: timedelta,
    interval_seconds: float,
) -> None:
    """Периодически удалять молчащие опрашиваемые устройства."""
    while True:
        await asyncio.sleep(interval_seconds)
        await protocol.evict_idle_devices(max_idle)


# === ФАБРИКА ===

def create_app(config: Settings | None = None) -> FastAPI:
    """
    Собрать приложение с собственными реестром, очередью и менеджером соединений.

    Каждый вызов даёт изолированный экземпляр состояния.
    """
    config = config or default_settings

    registry = DeviceRegistry(
        default_battery_level=config.devices.DEFAULT_BATTERY_LEVEL,
        default_speed=config.devices.DEFAULT_SPEED,
    )
    notifications = NotificationQueue(default_type=config.notifications.DEFAULT_TYPE)
    connections = ConnectionManager()
    protocol = BroadcastProtocol(
        registry,
        notifications,
        connections,
        polled_id_prefix=config.devices.POLLED_ID_PREFIX,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Жизненный цикл приложения."""
        setup_logging()
        await log_info(f"{SERVICE_NAME} запущен на порту {config.server.PORT}")

        sweeper: asyncio.Task | None = None
        idle_timeout = config.devices.POLLED_IDLE_TIMEOUT_SECONDS
        if idle_timeout is not None:
            sweeper = asyncio.create_task(sweep_idle_devices(
                protocol,
                timedelta(seconds=idle_timeout),
                config.devices.IDLE_SWEEP_INTERVAL_SECONDS,
            ))
            await log_info(f"Автоудаление опрашиваемых устройств через {idle_timeout} с")

        yield

        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        await log_info(f"{SERVICE_NAME} остановлен")

    app = FastAPI(
        title="Ambulance Location Relay",
        description="Рассылка позиций скорых в реальном времени и уведомления устройствам.",
        version=config.system.VERSION,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.protocol = protocol

    # === HEALTH CHECK ===

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса."""
        return HealthStatus(service=SERVICE_NAME, version=config.system.VERSION)

    # === STATS ===

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats(protocol: BroadcastProtocol = Depends(get_protocol)) -> StatsResponse:
        """Статистика соединений и устройств."""
        dispensary = config.dispensary
        return StatsResponse(
            **protocol.connections.get_stats(),
            registered_devices=len(protocol.registry),
            devices_at_dispensary=protocol.count_at_dispensary(
                dispensary.LATITUDE,
                dispensary.LONGITUDE,
                dispensary.PROXIMITY_THRESHOLD_METERS,
            ),
        )

    @app.get("/api/devices", tags=["Devices"])
    async def list_devices(protocol: BroadcastProtocol = Depends(get_protocol)) -> list[dict[str, Any]]:
        """Снимок реестра устройств."""
        return [record.to_payload() for record in protocol.registry.list_all()]

    # === ОПРАШИВАЮЩИЕ УСТРОЙСТВА ===

    @app.get("/api/device-location", response_class=PlainTextResponse, tags=["Devices"])
    async def device_location(
        id: str | None = Query(default=None),
        lat: str | None = Query(default=None),
        lon: str | None = Query(default=None),
        battery: str | None = Query(default=None),
        speed: str | None = Query(default=None),
        protocol: BroadcastProtocol = Depends(get_protocol),
    ) -> PlainTextResponse:
        """Позиция опрашивающего устройства."""
        try:
            await protocol.report_location(id, lat, lon, battery=battery, speed=speed)
        except ValidationError as e:
            await log_warning(f"Отклонена позиция устройства {id!r}: {e}")
            return PlainTextResponse(f"Missing or invalid parameter: {e.field}", status_code=400)
        except Exception as e:
            await log_error(f"Ошибка обработки позиции устройства {id!r}: {e}", exc_info=True)
            return PlainTextResponse("Internal server error", status_code=500)
        return PlainTextResponse("Data received")

    @app.get("/api/send-notification", response_class=PlainTextResponse, tags=["Notifications"])
    async def send_notification(
        target_id: str | None = Query(default=None),
        message: str | None = Query(default=None),
        type: str | None = Query(default=None),
        protocol: BroadcastProtocol = Depends(get_protocol),
    ) -> PlainTextResponse:
        """Поставить уведомление в очередь устройства."""
        try:
            await protocol.send_notification(target_id, message, type)
        except ValidationError as e:
            return PlainTextResponse(f"Missing parameter: {e.field}", status_code=400)
        return PlainTextResponse("Notification sent")

    @app.get("/api/notifications", response_class=PlainTextResponse, tags=["Notifications"])
    async def poll_notification(
        target_id: str | None = Query(default=None),
        protocol: BroadcastProtocol = Depends(get_protocol),
    ) -> PlainTextResponse:
        """Голова очереди без удаления."""
        try:
            return PlainTextResponse(protocol.poll_notification(target_id))
        except ValidationError as e:
            return PlainTextResponse(f"Missing parameter: {e.field}", status_code=400)

    @app.get("/api/notifications/acknowledge", response_class=PlainTextResponse, tags=["Notifications"])
    async def acknowledge_notification(
        target_id: str | None = Query(default=None),
        protocol: BroadcastProtocol = Depends(get_protocol),
    ) -> PlainTextResponse:
        """Подтвердить и удалить голову очереди."""
        try:
            await protocol.acknowledge_notification(target_id)
        except ValidationError as e:
            return PlainTextResponse(f"Missing parameter: {e.field}", status_code=400)
        except NotFoundError:
            return PlainTextResponse("No notifications to acknowledge", status_code=400)
        return PlainTextResponse("Notification acknowledged")

    @app.get("/location", response_class=PlainTextResponse, tags=["Devices"])
    async def location_sink(
        lat: str | None = Query(default=None),
        lon: str | None = Query(default=None),
    ) -> PlainTextResponse:
        """Телеметрия без гарантий: всегда OK."""
        await log_info(f"Телеметрия: lat={lat}, lon={lon}", type_msg=TypeMsg.DEBUG)
        return PlainTextResponse("OK")

    # === WEBSOCKET ===

    @app.websocket("/ws")
    async def websocket_relay(websocket: WebSocket) -> None:
        """
        Канал интерактивного клиента.

        Входящие сообщения:
        - {"event": "location-report", "latitude": .., "longitude": .., ...}
        - {"event": "ping"}
        """
        protocol: BroadcastProtocol = websocket.app.state.protocol
        client_id = await protocol.handle_connect(websocket)

        try:
            # Клиент, отключённый из-за ошибки отправки, уже закрыт менеджером
            while protocol.connections.is_connected(client_id):
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    await log_warning(f"Некорректный JSON от {client_id}: {raw[:120]}")
                    continue
                await protocol.handle_message(client_id, data)
        except WebSocketDisconnect:
            pass
        finally:
            await protocol.handle_disconnect(client_id)

    return app


# === APP ===

app = create_app()
