# src/services/relay/connection_manager.py
"""
Менеджер WebSocket соединений.
Хранит открытые каналы зрителей и рассылает им сообщения.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import WebSocket


DropCallback = Callable[[str], Awaitable[None]]


@dataclass
class ConnectionInfo:
    """Информация о соединении."""
    websocket: WebSocket
    client_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionManager:
    """
    Менеджер WebSocket соединений.

    Ошибка отправки одному клиенту отключает только его: остальные
    продолжают получать рассылку.
    """

    def __init__(self) -> None:
        # client_id -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}
        self._on_drop: DropCallback | None = None

        # Для статистики
        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        """Количество активных соединений."""
        return len(self._connections)

    def set_drop_callback(self, callback: DropCallback | None) -> None:
        """Callback, вызываемый для клиента, отключённого из-за ошибки отправки."""
        self._on_drop = callback

    def is_connected(self, client_id: str) -> bool:
        return client_id in self._connections

    async def connect(self, websocket: WebSocket, client_id: str) -> None:
        """Принять и зарегистрировать соединение."""
        await websocket.accept()
        self._connections[client_id] = ConnectionInfo(websocket=websocket, client_id=client_id)
        self._total_connections += 1

    def disconnect(self, client_id: str) -> bool:
        """
        Забыть соединение.

        Returns:
            True если соединение было зарегистрировано
        """
        return self._connections.pop(client_id, None) is not None

    async def send_personal(self, client_id: str, message: dict[str, Any]) -> bool:
        """
        Отправить сообщение конкретному клиенту.

        Returns:
            True если сообщение отправлено, False если клиент не подключен
        """
        conn = self._connections.get(client_id)
        if conn is None:
            return False

        try:
            await conn.websocket.send_json(message)
        except Exception:
            await self._drop(client_id)
            return False

        self._total_messages_sent += 1
        return True

    async def broadcast_all(self, message: dict[str, Any]) -> int:
        """
        Отправить сообщение всем подключенным клиентам.

        Returns:
            Количество успешно отправленных сообщений
        """
        sent_count = 0
        failed: list[str] = []

        for client_id, conn in list(self._connections.items()):
            try:
                await conn.websocket.send_json(message)
                sent_count += 1
                self._total_messages_sent += 1
            except Exception:
                failed.append(client_id)

        for client_id in failed:
            await self._drop(client_id)

        return sent_count

    async def _drop(self, client_id: str) -> None:
        conn = self._connections.get(client_id)
        if self._on_drop is not None:
            await self._on_drop(client_id)
        else:
            self.disconnect(client_id)
        if conn is not None:
            await self._close_connection(conn)

    async def _close_connection(self, conn: ConnectionInfo) -> None:
        """Закрыть соединение."""
        try:
            await conn.websocket.close()
        except Exception:
            pass

    def get_stats(self) -> dict[str, int]:
        """Получить статистику."""
        return {
            "active_connections": len(self._connections),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
        }
