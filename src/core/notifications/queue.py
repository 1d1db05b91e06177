# src/core/notifications/queue.py
"""
Очередь уведомлений по устройствам.

FIFO на каждое устройство; запись уходит только после явного
подтверждения головы очереди. Порядок между устройствами не важен.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Callable

from src.common.exceptions import NotFoundError
from src.core.notifications.models import NotificationRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationQueue:
    """
    Хранилище ожидающих уведомлений: device_id -> deque[NotificationRecord].

    Очередь устройства создаётся лениво при первой постановке.
    """

    def __init__(
        self,
        default_type: str = "info",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._queues: dict[str, deque[NotificationRecord]] = {}
        self._default_type = default_type
        self._clock = clock
        self._last_id = 0

    def _next_id(self, now: datetime) -> int:
        # Миллисекунды времени постановки, но строго возрастающие
        self._last_id = max(self._last_id + 1, int(now.timestamp() * 1000))
        return self._last_id

    def enqueue(self, device_id: str, message: str, type: str | None = None) -> NotificationRecord:
        """Добавить уведомление в конец очереди устройства."""
        now = self._clock()
        record = NotificationRecord(
            id=self._next_id(now),
            message=message,
            type=type or self._default_type,
            timestamp=now,
        )
        self._queues.setdefault(device_id, deque()).append(record)
        return record

    def peek_first(self, device_id: str) -> str | None:
        """Текст головы очереди без удаления; None, если уведомлений нет."""
        queue = self._queues.get(device_id)
        if not queue:
            return None
        return queue[0].message

    def acknowledge_first(self, device_id: str) -> NotificationRecord:
        """
        Удалить голову очереди.

        Raises:
            NotFoundError: очереди нет или она пуста
        """
        queue = self._queues.get(device_id)
        if not queue:
            raise NotFoundError(f"Нет уведомлений для устройства {device_id}")
        return queue.popleft()

    def pending_count(self, device_id: str) -> int:
        return len(self._queues.get(device_id, ()))
