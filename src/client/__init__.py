# src/client/__init__.py
"""
Клиентская часть: зеркало реестра зрителя, отрисовка и WebSocket-клиент.
"""

from src.client.session_view import AmbulanceView, ArrivalNotice, ClientSessionView

__all__ = [
    "AmbulanceView",
    "ArrivalNotice",
    "ClientSessionView",
]
