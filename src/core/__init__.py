# src/core/__init__.py
"""
Доменный слой (Core Domain).
Чистая логика релея, независимая от транспорта.
"""

from src.core.devices import DeviceRegistry
from src.core.notifications import NotificationQueue

__all__ = [
    "DeviceRegistry",
    "NotificationQueue",
]
