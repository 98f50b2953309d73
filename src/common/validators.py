# src/common/validators.py
"""
Проверки пользовательского ввода.
Вызываются до любой записи; при ошибке поднимают InvalidInputError.
"""

from __future__ import annotations

import math
from typing import Any

from src.common.exceptions import InvalidInputError


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_price(price: Any) -> float:
    """
    Проверяет цену предложения.

    Returns:
        Цена как float

    Raises:
        InvalidInputError: нечисловая, бесконечная или неположительная цена
    """
    if not _is_number(price) or math.isnan(price) or math.isinf(price):
        raise InvalidInputError(f"Цена должна быть числом: {price!r}")
    if price <= 0:
        raise InvalidInputError(f"Цена должна быть положительной: {price}")
    return float(price)


def validate_rating(rating: Any, min_rating: int = 1, max_rating: int = 5) -> int:
    """
    Проверяет оценку поездки (целое число звёзд).

    Raises:
        InvalidInputError: нецелая оценка или оценка вне диапазона
    """
    if not _is_number(rating):
        raise InvalidInputError(f"Оценка должна быть числом: {rating!r}")
    if isinstance(rating, float):
        if not rating.is_integer():
            raise InvalidInputError(f"Оценка должна быть целым числом: {rating}")
        rating = int(rating)
    if not min_rating <= rating <= max_rating:
        raise InvalidInputError(f"Оценка вне диапазона {min_rating}..{max_rating}: {rating}")
    return rating


def validate_actor_id(actor_id: Any) -> str:
    """Проверяет идентификатор участника."""
    if not isinstance(actor_id, str) or not actor_id.strip():
        raise InvalidInputError(f"Некорректный ID участника: {actor_id!r}")
    return actor_id
