# src/client/viewer.py
"""
WebSocket-клиент зрителя.
Держит соединение с релеем и передаёт каждое событие в ClientSessionView.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import websockets

from src.client.session_view import ClientSessionView
from src.common.constants import RelayEvent
from src.common.logger import log_error, log_info, log_warning


class ViewerClient:
    """
    Клиент зрителя с переподключением.

    Может также отправлять собственную позицию, как браузер с геолокацией.
    """

    def __init__(self, url: str, view: ClientSessionView, retry_delay: float = 5.0) -> None:
        self.url = url
        self.view = view
        self.retry_delay = retry_delay
        self._websocket: Any = None

    async def run(self) -> None:
        """Слушать сервер до отмены задачи, переподключаясь после ошибок."""
        while True:
            try:
                async with websockets.connect(self.url) as websocket:
                    self._websocket = websocket
                    await log_info(f"Подключено к релею: {self.url}")
                    async for raw in websocket:
                        await self.dispatch(raw)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await log_error(f"Ошибка WebSocket: {e}")
            finally:
                self._websocket = None
            await asyncio.sleep(self.retry_delay)

    async def dispatch(self, raw: str | bytes) -> None:
        """Разобрать кадр и применить его к зеркалу."""
        try:
            message = json.loads(raw)
            await self.view.handle_event(message)
        except (ValueError, KeyError, TypeError) as e:
            await log_warning(f"Пропущено некорректное сообщение сервера: {e}")

    async def send_location(
        self,
        latitude: float,
        longitude: float,
        **optional: Any,
    ) -> bool:
        """Отправить location-report; False если соединения нет."""
        if self._websocket is None:
            return False
        await self._websocket.send(json.dumps({
            "event": RelayEvent.LOCATION_REPORT.value,
            "latitude": latitude,
            "longitude": longitude,
            **optional,
        }))
        return True
