# tests/services/test_connection_manager.py
"""
Тесты менеджера WebSocket соединений (src/services/relay/connection_manager.py).
"""

from unittest.mock import AsyncMock

import pytest

from src.services.relay.connection_manager import ConnectionManager
from tests.helpers import make_websocket, sent_messages


class TestConnect:
    """Тесты подключения и отключения."""

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self, connections: ConnectionManager) -> None:
        websocket = make_websocket()

        await connections.connect(websocket, "c1")

        websocket.accept.assert_awaited_once()
        assert connections.is_connected("c1")
        assert connections.active_connections == 1

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, connections: ConnectionManager) -> None:
        await connections.connect(make_websocket(), "c1")

        assert connections.disconnect("c1") is True
        assert connections.disconnect("c1") is False
        assert connections.active_connections == 0


class TestSend:
    """Тесты отправки сообщений."""

    @pytest.mark.asyncio
    async def test_send_personal_only_to_target(self, connections: ConnectionManager) -> None:
        ws1, ws2 = make_websocket(), make_websocket()
        await connections.connect(ws1, "c1")
        await connections.connect(ws2, "c2")

        assert await connections.send_personal("c1", {"event": "pong"}) is True

        assert sent_messages(ws1) == [{"event": "pong"}]
        assert sent_messages(ws2) == []

    @pytest.mark.asyncio
    async def test_send_personal_unknown_client(self, connections: ConnectionManager) -> None:
        assert await connections.send_personal("nobody", {"event": "pong"}) is False

    @pytest.mark.asyncio
    async def test_broadcast_all(self, connections: ConnectionManager) -> None:
        sockets = [make_websocket() for _ in range(3)]
        for i, ws in enumerate(sockets):
            await connections.connect(ws, f"c{i}")

        sent = await connections.broadcast_all({"event": "device-removed", "id": "x"})

        assert sent == 3
        for ws in sockets:
            assert sent_messages(ws) == [{"event": "device-removed", "id": "x"}]

    @pytest.mark.asyncio
    async def test_broken_client_dropped_others_served(self, connections: ConnectionManager) -> None:
        """Ошибка отправки одному клиенту не мешает остальным."""
        healthy, broken = make_websocket(), make_websocket()
        broken.send_json.side_effect = RuntimeError("socket closed")
        await connections.connect(healthy, "ok")
        await connections.connect(broken, "bad")

        sent = await connections.broadcast_all({"event": "pong"})

        assert sent == 1
        assert connections.is_connected("ok")
        assert not connections.is_connected("bad")
        broken.close.assert_awaited_once()
        healthy.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_error_on_drop_ignored(self, connections: ConnectionManager) -> None:
        broken = make_websocket()
        broken.send_json.side_effect = RuntimeError("socket closed")
        broken.close.side_effect = RuntimeError("already closed")
        await connections.connect(broken, "bad")

        assert await connections.send_personal("bad", {"event": "pong"}) is False
        assert not connections.is_connected("bad")

    @pytest.mark.asyncio
    async def test_drop_callback_invoked(self, connections: ConnectionManager) -> None:
        callback = AsyncMock()
        connections.set_drop_callback(callback)
        broken = make_websocket()
        broken.send_json.side_effect = RuntimeError("socket closed")
        await connections.connect(broken, "bad")

        assert await connections.send_personal("bad", {"event": "pong"}) is False

        callback.assert_awaited_once_with("bad")


class TestStats:
    """Тесты статистики."""

    @pytest.mark.asyncio
    async def test_get_stats(self, connections: ConnectionManager) -> None:
        await connections.connect(make_websocket(), "c1")
        await connections.connect(make_websocket(), "c2")
        await connections.broadcast_all({"event": "pong"})
        connections.disconnect("c2")

        assert connections.get_stats() == {
            "active_connections": 1,
            "total_connections_ever": 2,
            "total_messages_sent": 2,
        }
