# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from src.core.devices import DeviceRegistry
from src.core.notifications import NotificationQueue
from src.services.relay.connection_manager import ConnectionManager
from src.services.relay.protocol import BroadcastProtocol
from tests.helpers import (
    DISPENSARY_LAT,
    DISPENSARY_LON,
    THRESHOLD_METERS,
    FakeClock,
    make_websocket,
)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Тестовая конфигурация",
        "PROJECT_NAME": "ambulance_relay_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "LOG_MAX_BYTES": 1024,
        "HOST": "127.0.0.1",
        "PORT": 9191,
        "DISPENSARY_LATITUDE": DISPENSARY_LAT,
        "DISPENSARY_LONGITUDE": DISPENSARY_LON,
        "PROXIMITY_THRESHOLD_METERS": THRESHOLD_METERS,
        "POLLED_ID_PREFIX": "esp32-",
        "DEFAULT_BATTERY_LEVEL": "Unknown",
        "DEFAULT_SPEED": 0.0,
        "POLLED_IDLE_TIMEOUT_SECONDS": 120,
        "IDLE_SWEEP_INTERVAL_SECONDS": 10,
        "ROUTING_ENABLED": False,
        "ROUTING_BASE_URL": "http://osrm.test",
        "ROUTING_PROFILE": "driving",
        "ROUTING_TIMEOUT_SECONDS": 2.0,
        "NOTIFICATION_DEFAULT_TYPE": "info",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ЯДРО
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def registry(clock: FakeClock) -> DeviceRegistry:
    return DeviceRegistry(clock=clock)


@pytest.fixture
def notification_queue(clock: FakeClock) -> NotificationQueue:
    return NotificationQueue(clock=clock)


# =============================================================================
# ТРАНСПОРТ (МОКИ)
# =============================================================================

@pytest.fixture
def websocket_factory() -> Callable[[], MagicMock]:
    return make_websocket


@pytest.fixture
def connections() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def protocol(
    registry: DeviceRegistry,
    notification_queue: NotificationQueue,
    connections: ConnectionManager,
) -> BroadcastProtocol:
    return BroadcastProtocol(registry, notification_queue, connections)
