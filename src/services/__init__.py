# src/services/__init__.py
"""
Сервисы приложения.

- relay: WebSocket-рассылка позиций и HTTP-интерфейс опрашивающих устройств
"""

__all__: list[str] = []
