# src/common/exceptions.py
"""
Иерархия исключений ядра матчинга и торга.
"""

from __future__ import annotations


class RideMatchError(Exception):
    """Базовое исключение проекта."""
    pass


class StoreUnavailableError(RideMatchError):
    """Хранилище недоступно. Операция считается не применённой, повтор безопасен."""
    pass


class InvalidInputError(RideMatchError, ValueError):
    """Некорректная цена, оценка, координаты или участник. Запись не выполнялась."""
    pass


class InvalidTransitionError(RideMatchError):
    """Операция недопустима в текущем статусе записи."""

    def __init__(self, entity: str, current: str, action: str) -> None:
        self.entity = entity
        self.current = current
        self.action = action
        super().__init__(f"{entity}: действие '{action}' недопустимо в статусе {current}")


class NotFoundError(RideMatchError):
    """Запись не найдена в хранилище."""

    def __init__(self, entity: str, key: str) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} не найден")


class AdminActionForbiddenError(RideMatchError):
    """Административное действие запрещено конфигурацией."""
    pass
