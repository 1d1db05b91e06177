# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Хосты и порты переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ambulance_relay"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только colored и json."""
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class ServerSettings(BaseModel):
    """Настройки HTTP/WebSocket сервера."""
    HOST: str = "0.0.0.0"
    PORT: int = 9090


class DispensarySettings(BaseModel):
    """Фиксированная точка назначения и порог близости."""
    LATITUDE: float = 12.841634120899181
    LONGITUDE: float = 80.1565623625399
    PROXIMITY_THRESHOLD_METERS: float = Field(default=100.0, ge=0)


class DeviceSettings(BaseModel):
    """Настройки реестра устройств."""
    POLLED_ID_PREFIX: str = "esp32-"
    DEFAULT_BATTERY_LEVEL: str = "Unknown"
    DEFAULT_SPEED: float = 0.0
    # None: опрашиваемые устройства никогда не удаляются по неактивности
    POLLED_IDLE_TIMEOUT_SECONDS: float | None = None
    IDLE_SWEEP_INTERVAL_SECONDS: float = 30.0


class RoutingSettings(BaseModel):
    """Настройки внешнего сервиса маршрутов (OSRM-совместимый)."""
    ENABLED: bool = True
    BASE_URL: str = "https://router.project-osrm.org"
    PROFILE: str = "driving"
    TIMEOUT_SECONDS: float = 10.0


class NotificationSettings(BaseModel):
    """Настройки очереди уведомлений."""
    DEFAULT_TYPE: str = "info"


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    dispensary: DispensarySettings = Field(default_factory=DispensarySettings)
    devices: DeviceSettings = Field(default_factory=DeviceSettings)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Хост, порт и адрес роутинга переопределяются из переменных окружения.
        """
        config_data = load_config_json(path)

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        filtered_data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=filtered_data.get("PROJECT_NAME", "ambulance_relay"),
                VERSION=filtered_data.get("VERSION", "1.0.0"),
                DEBUG=filtered_data.get("DEBUG", False),
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", filtered_data.get("ENVIRONMENT", "development")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                LOG_TO_FILE=filtered_data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=filtered_data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=filtered_data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=filtered_data.get("LOG_MAX_BYTES", 10485760),
            ),
            server=ServerSettings(
                HOST=os.getenv("RELAY_HOST", filtered_data.get("HOST", "0.0.0.0")),
                PORT=int(os.getenv("RELAY_PORT", filtered_data.get("PORT", 9090))),
            ),
            dispensary=DispensarySettings(
                LATITUDE=filtered_data.get("DISPENSARY_LATITUDE", 12.841634120899181),
                LONGITUDE=filtered_data.get("DISPENSARY_LONGITUDE", 80.1565623625399),
                PROXIMITY_THRESHOLD_METERS=filtered_data.get("PROXIMITY_THRESHOLD_METERS", 100.0),
            ),
            devices=DeviceSettings(
                POLLED_ID_PREFIX=filtered_data.get("POLLED_ID_PREFIX", "esp32-"),
                DEFAULT_BATTERY_LEVEL=filtered_data.get("DEFAULT_BATTERY_LEVEL", "Unknown"),
                DEFAULT_SPEED=filtered_data.get("DEFAULT_SPEED", 0.0),
                POLLED_IDLE_TIMEOUT_SECONDS=filtered_data.get("POLLED_IDLE_TIMEOUT_SECONDS"),
                IDLE_SWEEP_INTERVAL_SECONDS=filtered_data.get("IDLE_SWEEP_INTERVAL_SECONDS", 30.0),
            ),
            routing=RoutingSettings(
                ENABLED=filtered_data.get("ROUTING_ENABLED", True),
                BASE_URL=os.getenv("ROUTING_BASE_URL", filtered_data.get("ROUTING_BASE_URL", "https://router.project-osrm.org")),
                PROFILE=filtered_data.get("ROUTING_PROFILE", "driving"),
                TIMEOUT_SECONDS=filtered_data.get("ROUTING_TIMEOUT_SECONDS", 10.0),
            ),
            notifications=NotificationSettings(
                DEFAULT_TYPE=filtered_data.get("NOTIFICATION_DEFAULT_TYPE", "info"),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    # Загружаем .env файл
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
