# src/core/ratings/models.py
"""
Агрегированный рейтинг участника.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RatingAggregate(BaseModel):
    """Скользящее среднее всех полученных оценок."""

    average: float = Field(5.0, ge=0.0, le=5.0, description="Средняя оценка")
    count: int = Field(0, ge=0, description="Количество оценок")

    def with_rating(self, rating: int) -> "RatingAggregate":
        """Агрегат после ещё одной оценки."""
        count = self.count + 1
        average = (self.average * self.count + rating) / count
        return RatingAggregate(average=average, count=count)
