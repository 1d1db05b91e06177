# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class DeviceType(str, Enum):
    """Тип устройства, присылающего координаты."""
    BROWSER = "Browser"
    ESP32 = "ESP32"

    def __str__(self) -> str:
        return self.value


class DeviceSource(str, Enum):
    """Способ связи устройства с сервером."""
    SESSION = "session"  # постоянный WebSocket-канал
    POLLED = "polled"    # отдельные HTTP-запросы

    def __str__(self) -> str:
        return self.value


class ProximityState(str, Enum):
    """Состояние скорой относительно диспансера (на стороне зрителя)."""
    UNKNOWN = "unknown"
    EN_ROUTE = "en_route"
    AT_DISPENSARY = "at_dispensary"
    REMOVED = "removed"

    def __str__(self) -> str:
        return self.value


class RelayEvent(str, Enum):
    """Имена событий реального времени."""
    CONNECTION_ESTABLISHED = "connection-established"
    LOCATION_REPORT = "location-report"
    LOCATION_UPDATE = "location-update"
    DEVICE_REMOVED = "device-removed"
    NOTIFICATION_CREATED = "notification-created"
    PING = "ping"
    PONG = "pong"

    def __str__(self) -> str:
        return self.value


# Тексты ответов HTTP-интерфейса для опрашиваемых устройств
NO_NOTIFICATIONS = "No notifications"
NOTIFICATION_PREFIX = "NOTIFICATION:"
