# src/services/relay/schemas.py
"""
Pydantic-модели сообщений и ответов релея.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.common.constants import DeviceType


class LocationReportMessage(BaseModel):
    """Входящее событие location-report от интерактивного клиента."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90, strict=True)
    longitude: float = Field(..., ge=-180, le=180, strict=True)
    battery_level: str | float | None = Field(default=None, alias="batteryLevel")
    speed: float | None = Field(default=None, ge=0, alias="speed")
    device_type: DeviceType | None = Field(default=None, alias="deviceType")


class StatsResponse(BaseModel):
    """Статистика релея."""
    active_connections: int
    registered_devices: int
    devices_at_dispensary: int
    total_connections_ever: int
    total_messages_sent: int


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""
    service: str
    status: str = "healthy"
    version: str | None = None
