# src/core/devices/registry.py
"""
Реестр подключённых устройств процесса.

Создаётся при старте сервера и передаётся обработчикам явно.
Обработка событий сериализована циклом событий, поэтому блокировок нет.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from src.common.constants import DeviceSource, DeviceType
from src.core.devices.models import DeviceHandle, DeviceRecord, LocationReport


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceRegistry:
    """
    Отображение device_id -> последняя известная запись.

    Инвариант: не больше одной записи на id. Каждый отчёт заменяет запись целиком:
    непереданные необязательные поля получают значения по умолчанию,
    а не значения из предыдущей записи.
    """

    def __init__(
        self,
        default_battery_level: str | float = "Unknown",
        default_speed: float = 0.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._records: dict[str, DeviceRecord] = {}
        self._default_battery_level = default_battery_level
        self._default_speed = default_speed
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._records

    def _default_type(self, source: DeviceSource) -> DeviceType:
        return DeviceType.ESP32 if source is DeviceSource.POLLED else DeviceType.BROWSER

    def upsert(self, device: DeviceHandle, report: LocationReport) -> tuple[DeviceRecord, bool]:
        """
        Вставить или заменить запись устройства.

        Returns:
            (снимок итоговой записи, True если записи для id раньше не было)
        """
        device_id = device.device_id
        battery = report.battery_level if report.battery_level is not None else self._default_battery_level
        speed = report.speed if report.speed is not None else self._default_speed
        device_type = report.device_type or self._default_type(device.source)
        now = self._clock()

        record = self._records.get(device_id)
        is_new = record is None
        if is_new:
            record = DeviceRecord(
                id=device_id,
                latitude=report.latitude,
                longitude=report.longitude,
                source=device.source,
                battery_level=battery,
                speed=speed,
                device_type=device_type,
                last_update=now,
            )
            self._records[device_id] = record
        else:
            record.latitude = report.latitude
            record.longitude = report.longitude
            record.source = device.source
            record.battery_level = battery
            record.speed = speed
            record.device_type = device_type
            record.last_update = now

        return replace(record), is_new

    def remove(self, device_id: str) -> bool:
        """Удалить запись. Идемпотентно: для отсутствующего id ничего не делает."""
        return self._records.pop(device_id, None) is not None

    def get(self, device_id: str) -> DeviceRecord | None:
        record = self._records.get(device_id)
        return replace(record) if record else None

    def list_all(self) -> list[DeviceRecord]:
        """Снимок всех записей на момент вызова."""
        return [replace(r) for r in self._records.values()]

    def evict_idle(self, max_idle: timedelta, now: datetime | None = None) -> list[str]:
        """
        Удалить опрашиваемые устройства, молчащие дольше max_idle.

        Сессионные устройства не трогаются: они удаляются только при разрыве канала.

        Returns:
            Список удалённых id
        """
        now = now or self._clock()
        stale = [
            device_id
            for device_id, record in self._records.items()
            if record.source is DeviceSource.POLLED and now - record.last_update > max_idle
        ]
        for device_id in stale:
            del self._records[device_id]
        return stale
