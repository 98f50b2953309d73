# src/core/history/models.py
"""
Запись истории поездок.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from src.common.clock import as_utc
from src.common.constants import TransactionStatus


class RideHistoryRecord(BaseModel):
    """Снимок согласованной поездки. Пишется один раз."""

    record_id: str = Field(default_factory=lambda: str(uuid4()), description="UUID записи")
    transaction_id: str = Field(..., description="ID сделки")
    original_call_id: str = Field(..., description="ID вызова")
    customer_id: str = Field(..., description="ID клиента")
    driver_id: str = Field(..., description="ID водителя")
    price: float = Field(..., gt=0, description="Согласованная цена")
    status: TransactionStatus = Field(TransactionStatus.AGREED, description="Статус на момент записи")

    # Без координат вызова пишутся нули
    start_lat: float = Field(0.0, description="Широта подачи")
    start_lon: float = Field(0.0, description="Долгота подачи")
    dest_lat: float = Field(0.0, description="Широта назначения")
    dest_lon: float = Field(0.0, description="Долгота назначения")

    recorded_at: datetime = Field(..., description="Время записи (UTC)")

    @field_validator("recorded_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)
