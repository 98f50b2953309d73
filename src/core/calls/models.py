# src/core/calls/models.py
"""
Модели вызовов (запросов на поездку).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from src.common.clock import as_utc, utc_now
from src.common.constants import ActorRole, CallStatus


class Call(BaseModel):
    """Запрос на поездку, опубликованный клиентом."""

    call_id: str = Field(default_factory=lambda: str(uuid4()), description="UUID вызова")
    initiator_id: str = Field(..., min_length=1, description="ID клиента")
    initiator_role: ActorRole = Field(ActorRole.CUSTOMER, description="Роль инициатора")

    # Локации
    pickup_lat: float = Field(..., ge=-90.0, le=90.0, description="Широта подачи")
    pickup_lon: float = Field(..., ge=-180.0, le=180.0, description="Долгота подачи")
    dest_lat: Optional[float] = Field(None, ge=-90.0, le=90.0, description="Широта назначения")
    dest_lon: Optional[float] = Field(None, ge=-180.0, le=180.0, description="Долгота назначения")

    passenger_count: int = Field(1, ge=1, description="Количество пассажиров")
    offer_price: float = Field(..., gt=0, description="Предложенная клиентом цена")

    # Статус
    status: CallStatus = Field(CallStatus.OPEN, description="Статус вызова")
    accepted_by: Optional[str] = Field(None, description="ID принявшего водителя")
    transaction_id: Optional[str] = Field(None, description="ID сделки")

    created_at: datetime = Field(default_factory=utc_now, description="Время создания (UTC)")

    @field_validator("created_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def check_invariants(self) -> "Call":
        """Сделка привязана только к принятому или завершённому вызову."""
        if (self.dest_lat is None) != (self.dest_lon is None):
            raise ValueError("Назначение задаётся обеими координатами или не задаётся")

        linked = self.status in (CallStatus.ACCEPTED, CallStatus.COMPLETED)
        if linked != (self.transaction_id is not None):
            raise ValueError(f"transaction_id несовместим со статусом {self.status.value}")
        if linked and self.accepted_by is None:
            raise ValueError("Принятый вызов должен содержать accepted_by")
        return self

    @property
    def has_destination(self) -> bool:
        return self.dest_lat is not None

    @property
    def is_active(self) -> bool:
        """Открыт или принят."""
        return self.status in (CallStatus.OPEN, CallStatus.ACCEPTED)

    def is_stale(self, now: datetime, window: timedelta) -> bool:
        """Вызов старше окна устаревания."""
        return now - self.created_at >= window

    def participant_id(self, role: ActorRole) -> Optional[str]:
        """Клиент: инициатор, водитель: принявший."""
        return self.initiator_id if role is ActorRole.CUSTOMER else self.accepted_by

    def evolve(self, **changes: Any) -> "Call":
        """Новая версия вызова с проверкой инвариантов модели."""
        return Call.model_validate({**self.model_dump(), **changes})
