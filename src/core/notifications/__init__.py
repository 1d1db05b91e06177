# src/core/notifications/__init__.py
"""
Очередь уведомлений для опрашивающих устройств.
"""

from src.core.notifications.models import NotificationRecord
from src.core.notifications.queue import NotificationQueue

__all__ = [
    "NotificationQueue",
    "NotificationRecord",
]
