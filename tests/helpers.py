# tests/helpers.py
"""
Вспомогательные объекты для тестов: часы, моки WebSocket, координаты.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock


# Диспансер из конфигурации по умолчанию
DISPENSARY_LAT = 12.841634120899181
DISPENSARY_LON = 80.1565623625399
THRESHOLD_METERS = 100.0

# Точка в нескольких метрах от диспансера и точка примерно в 8 км от него
NEAR_POINT = (12.8416, 80.1566)
FAR_POINT = (12.9, 80.2)


class FakeClock:
    """Управляемые часы для детерминированных меток времени."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_websocket() -> MagicMock:
    """Мок WebSocket с записью отправленных сообщений."""
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


def sent_messages(websocket: MagicMock) -> list[dict[str, Any]]:
    """Все сообщения, отправленные в мок WebSocket."""
    return [c.args[0] for c in websocket.send_json.await_args_list]


def sent_events(websocket: MagicMock) -> list[str]:
    return [message["event"] for message in sent_messages(websocket)]
