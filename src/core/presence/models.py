# src/core/presence/models.py
"""
Модели присутствия участников.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.common.clock import as_utc
from src.common.constants import ActorRole, PaymentMethod


class PresenceRecord(BaseModel):
    """Геопозиция и возможности участника. Одна запись на участника, last-write-wins."""

    actor_id: str = Field(..., min_length=1, description="ID участника")
    latitude: float = Field(..., ge=-90.0, le=90.0, description="Широта")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Долгота")
    role: ActorRole = Field(..., description="Роль участника")
    available_seats: int = Field(0, ge=0, description="Свободные места (0: занят)")
    passenger_count: int = Field(0, ge=0, description="Количество пассажиров")
    payment_methods: set[PaymentMethod] = Field(default_factory=set, description="Способы оплаты")
    rating: Optional[float] = Field(None, ge=0.0, le=5.0, description="Рейтинг")
    last_updated: datetime = Field(..., description="Время последнего обновления (UTC)")

    @field_validator("last_updated")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_busy(self) -> bool:
        """Водитель без свободных мест занят."""
        return self.available_seats == 0

    def is_live(self, now: datetime, liveness: timedelta) -> bool:
        """Запись моложе окна живости."""
        return now - self.last_updated < liveness
