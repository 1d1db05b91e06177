# src/core/devices/__init__.py
"""
Реестр устройств.
Последнее известное состояние каждого подключённого устройства.
"""

from src.core.devices.models import (
    DeviceHandle,
    DeviceRecord,
    LocationReport,
    PolledDevice,
    SessionDevice,
)
from src.core.devices.registry import DeviceRegistry

__all__ = [
    "DeviceHandle",
    "DeviceRecord",
    "DeviceRegistry",
    "LocationReport",
    "PolledDevice",
    "SessionDevice",
]
