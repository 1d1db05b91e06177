# src/core/devices/models.py
"""
Модели реестра устройств.

SessionDevice и PolledDevice: две формы идентичности устройства,
различаемые по тегу source. Обе дают строковый device_id для реестра.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union

from src.common.constants import DeviceSource, DeviceType


# =============================================================================
# ИДЕНТИЧНОСТЬ УСТРОЙСТВА
# =============================================================================

@dataclass(frozen=True)
class SessionDevice:
    """Интерактивный клиент: id выдаётся на соединение и теряется при разрыве."""
    session_id: str
    source: Literal[DeviceSource.SESSION] = DeviceSource.SESSION

    @property
    def device_id(self) -> str:
        return self.session_id


@dataclass(frozen=True)
class PolledDevice:
    """Опрашивающее устройство: id выводится из аппаратного и живёт между запросами."""
    hardware_id: str
    prefix: str = "esp32-"
    source: Literal[DeviceSource.POLLED] = DeviceSource.POLLED

    @property
    def device_id(self) -> str:
        return f"{self.prefix}{self.hardware_id}"


DeviceHandle = Union[SessionDevice, PolledDevice]


# =============================================================================
# ОТЧЁТ И ЗАПИСЬ
# =============================================================================

@dataclass(frozen=True)
class LocationReport:
    """
    Один отчёт о позиции.
    None в необязательных полях означает «поле не передано».
    """
    latitude: float
    longitude: float
    battery_level: str | float | None = None
    speed: float | None = None
    device_type: DeviceType | None = None


@dataclass
class DeviceRecord:
    """Последнее известное состояние устройства (одна запись на id)."""
    id: str
    latitude: float
    longitude: float
    source: DeviceSource = DeviceSource.SESSION
    battery_level: str | float = "Unknown"
    speed: float = 0.0
    device_type: DeviceType = DeviceType.BROWSER
    last_update: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        """Представление записи на проводе (camelCase, как у клиентов)."""
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "batteryLevel": self.battery_level,
            "speed": self.speed,
            "deviceType": self.device_type.value,
            "lastUpdate": self.last_update.isoformat(),
        }
