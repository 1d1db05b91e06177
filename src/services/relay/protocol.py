# src/services/relay/protocol.py
"""
Протокол рассылки релея.

Связывает реестр устройств, очередь уведомлений и WebSocket-рассылку:
- интерактивные клиенты: connection-established, location-report,
  location-update, device-removed, notification-created;
- опрашивающие устройства: разовые операции запрос/ответ.

Доставка «не более одного раза»: пропущенное событие не переотправляется,
единственное восстановление: повтор снимка реестра новому клиенту.
"""

from __future__ import annotations

import math
from datetime import timedelta
from typing import Any
from uuid import uuid4

from fastapi import WebSocket
from pydantic import ValidationError as PydanticValidationError

from src.common.constants import (
    NO_NOTIFICATIONS,
    NOTIFICATION_PREFIX,
    DeviceType,
    RelayEvent,
    TypeMsg,
)
from src.common.exceptions import ValidationError
from src.common.logger import log_info, log_warning
from src.core.devices import DeviceRecord, DeviceRegistry, LocationReport, PolledDevice, SessionDevice
from src.core.geo.utils import is_within_threshold
from src.core.notifications import NotificationQueue, NotificationRecord
from src.services.relay.connection_manager import ConnectionManager
from src.services.relay.schemas import LocationReportMessage


# =============================================================================
# СООБЩЕНИЯ
# =============================================================================

def location_update_message(record: DeviceRecord) -> dict[str, Any]:
    return {"event": RelayEvent.LOCATION_UPDATE.value, **record.to_payload()}


def device_removed_message(device_id: str) -> dict[str, Any]:
    return {"event": RelayEvent.DEVICE_REMOVED.value, "id": device_id}


def notification_created_message(device_id: str, notification: NotificationRecord) -> dict[str, Any]:
    return {
        "event": RelayEvent.NOTIFICATION_CREATED.value,
        "deviceId": device_id,
        "notification": notification.to_payload(),
    }


# =============================================================================
# ВАЛИДАЦИЯ ПОЛЕЙ ОПРАШИВАЮЩИХ УСТРОЙСТВ
# =============================================================================

def _require(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Отсутствует обязательное поле: {field}", field=field)
    return str(value).strip()


def _parse_float(value: Any, field: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Поле {field} должно быть числом: {value!r}", field=field) from None
    if not math.isfinite(number):
        raise ValidationError(f"Поле {field} должно быть конечным числом", field=field)
    return number


def _parse_coordinates(lat: Any, lon: Any) -> tuple[float, float]:
    latitude = _parse_float(_require(lat, "lat"), "lat")
    longitude = _parse_float(_require(lon, "lon"), "lon")
    if not -90 <= latitude <= 90:
        raise ValidationError(f"Широта вне диапазона: {latitude}", field="lat")
    if not -180 <= longitude <= 180:
        raise ValidationError(f"Долгота вне диапазона: {longitude}", field="lon")
    return latitude, longitude


# =============================================================================
# ПРОТОКОЛ
# =============================================================================

class BroadcastProtocol:
    """
    Правила рассылки: кто и когда получает какое событие.

    Все обработчики выполняются в одном цикле событий и не прерываются
    между изменением реестра и постановкой рассылки.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        notifications: NotificationQueue,
        connections: ConnectionManager,
        polled_id_prefix: str = "esp32-",
    ) -> None:
        self.registry = registry
        self.notifications = notifications
        self.connections = connections
        self._polled_id_prefix = polled_id_prefix
        connections.set_drop_callback(self.handle_disconnect)

    # === ИНТЕРАКТИВНЫЙ КАНАЛ ===

    async def handle_connect(self, websocket: WebSocket) -> str:
        """
        Зарегистрировать нового клиента.

        Клиент получает свой id, затем по одному location-update на каждое
        устройство из текущего снимка реестра (только он). Запись читается
        заново перед каждой отправкой, чтобы не затереть более свежую
        рассылку устаревшей копией.
        """
        client_id = uuid4().hex
        await self.connections.connect(websocket, client_id)
        await self.connections.send_personal(client_id, {
            "event": RelayEvent.CONNECTION_ESTABLISHED.value,
            "client_id": client_id,
        })

        for device_id in [record.id for record in self.registry.list_all()]:
            record = self.registry.get(device_id)
            if record is None:
                continue
            await self.connections.send_personal(client_id, location_update_message(record))

        await log_info(f"Клиент подключён: {client_id}", extra={"client_id": client_id})
        return client_id

    async def handle_message(self, client_id: str, data: Any) -> None:
        """Обработать одно входящее сообщение клиента."""
        event = data.get("event") if isinstance(data, dict) else None

        if event == RelayEvent.LOCATION_REPORT.value:
            try:
                await self.handle_location_report(client_id, data)
            except ValidationError as e:
                # Некорректный отчёт одного клиента не влияет на остальных
                await log_warning(f"Отклонён location-report от {client_id}: {e}")
        elif event == RelayEvent.PING.value:
            await self.connections.send_personal(client_id, {"event": RelayEvent.PONG.value})
        else:
            await log_warning(f"Неизвестное событие от {client_id}: {event!r}")

    async def handle_location_report(self, client_id: str, payload: dict[str, Any]) -> DeviceRecord:
        """
        Upsert позиции интерактивного клиента и рассылка всем, включая отправителя.

        Raises:
            ValidationError: некорректный отчёт или клиент уже отключён
        """
        if not self.connections.is_connected(client_id):
            raise ValidationError(f"Клиент не подключён: {client_id}")

        try:
            message = LocationReportMessage.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Некорректный location-report: {e.errors()}") from e

        report = LocationReport(
            latitude=message.latitude,
            longitude=message.longitude,
            battery_level=message.battery_level,
            speed=message.speed,
            device_type=message.device_type,
        )
        record, _ = self.registry.upsert(SessionDevice(client_id), report)
        await self.connections.broadcast_all(location_update_message(record))
        return record

    async def handle_disconnect(self, client_id: str) -> None:
        """
        Клиент отключился: удалить его устройство и разослать device-removed.

        Запись устройства удаляется всегда, даже если соединение уже забыто.
        Повторный вызов для уже отключённого клиента ничего не делает.
        """
        was_connected = self.connections.disconnect(client_id)
        was_registered = self.registry.remove(client_id)
        if not (was_connected or was_registered):
            return

        await log_info(f"Клиент отключён: {client_id}", extra={"client_id": client_id})
        await self.connections.broadcast_all(device_removed_message(client_id))

    # === ОПРАШИВАЮЩИЕ УСТРОЙСТВА ===

    async def report_location(
        self,
        device_id: str | None,
        lat: Any,
        lon: Any,
        battery: Any = None,
        speed: Any = None,
    ) -> DeviceRecord:
        """
        Принять позицию опрашивающего устройства.

        Ведёт себя как location-report: upsert и рассылка. Непереданные
        battery/speed сбрасываются к значениям по умолчанию.

        Raises:
            ValidationError: нет id/lat/lon или они не числовые
        """
        hardware_id = _require(device_id, "id")
        latitude, longitude = _parse_coordinates(lat, lon)
        battery_level = str(battery).strip() if battery is not None and str(battery).strip() else None
        parsed_speed = _parse_float(speed, "speed") if speed not in (None, "") else None

        report = LocationReport(
            latitude=latitude,
            longitude=longitude,
            battery_level=battery_level,
            speed=parsed_speed,
            device_type=DeviceType.ESP32,
        )
        device = PolledDevice(hardware_id, prefix=self._polled_id_prefix)
        record, is_new = self.registry.upsert(device, report)

        await log_info(
            f"Позиция устройства {record.id}: {latitude}, {longitude}",
            type_msg=TypeMsg.DEBUG,
            extra={"device_id": record.id, "is_new": is_new},
        )
        await self.connections.broadcast_all(location_update_message(record))
        return record

    async def send_notification(
        self,
        target_id: str | None,
        message: str | None,
        type: str | None = None,
    ) -> NotificationRecord:
        """
        Поставить уведомление в очередь устройства и разослать notification-created всем.

        Raises:
            ValidationError: нет target_id или message
        """
        target = _require(target_id, "target_id")
        text = _require(message, "message")

        notification = self.notifications.enqueue(target, text, type or None)
        await log_info(
            f"Уведомление для {target}: {text}",
            extra={"device_id": target, "notification_id": notification.id},
        )
        await self.connections.broadcast_all(notification_created_message(target, notification))
        return notification

    def poll_notification(self, target_id: str | None) -> str:
        """Текст головы очереди в виде 'NOTIFICATION:<message>' или 'No notifications'."""
        target = _require(target_id, "target_id")
        message = self.notifications.peek_first(target)
        if message is None:
            return NO_NOTIFICATIONS
        return f"{NOTIFICATION_PREFIX}{message}"

    async def acknowledge_notification(self, target_id: str | None) -> NotificationRecord:
        """
        Подтвердить и удалить голову очереди.

        Raises:
            ValidationError: нет target_id
            NotFoundError: очереди нет или она пуста
        """
        target = _require(target_id, "target_id")
        notification = self.notifications.acknowledge_first(target)
        await log_info(f"Уведомление {notification.id} подтверждено устройством {target}")
        return notification

    # === ОБСЛУЖИВАНИЕ ===

    async def evict_idle_devices(self, max_idle: timedelta) -> list[str]:
        """Удалить молчащие опрашиваемые устройства и разослать device-removed для каждого."""
        evicted = self.registry.evict_idle(max_idle)
        for device_id in evicted:
            await log_info(f"Устройство удалено по неактивности: {device_id}")
            await self.connections.broadcast_all(device_removed_message(device_id))
        return evicted

    def count_at_dispensary(self, fixed_lat: float, fixed_lon: float, threshold_meters: float) -> int:
        return sum(
            1
            for record in self.registry.list_all()
            if is_within_threshold(record.latitude, record.longitude, fixed_lat, fixed_lon, threshold_meters)
        )
