# src/common/exceptions.py
"""
Таксономия ошибок ядра релея.
Ни одна из них не фатальна для процесса.
"""

from __future__ import annotations


class RelayError(Exception):
    """Базовая ошибка релея."""


class ValidationError(RelayError):
    """Отсутствует или некорректно обязательное поле. Повторять не нужно."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(RelayError):
    """Очередь уведомлений устройства отсутствует или пуста."""


class TransientComputationError(RelayError):
    """Сбой внешнего сервиса маршрутов. Проглатывается, прежнее состояние сохраняется."""
