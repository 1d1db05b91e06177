# src/services/relay/__init__.py
"""
Relay — сервис live-tracking скорых.

Обеспечивает:
- WebSocket канал для браузеров (отчёты о позиции и рассылка обновлений)
- HTTP интерфейс для опрашивающих устройств (ESP32)
- Очередь уведомлений для устройств
"""
