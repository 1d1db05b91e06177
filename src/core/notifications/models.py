# src/core/notifications/models.py
"""
Модель уведомления для устройства.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class NotificationRecord:
    """Одно ожидающее уведомление."""
    id: int
    message: str
    type: str = "info"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
        }
