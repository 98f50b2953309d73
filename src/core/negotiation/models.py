# src/core/negotiation/models.py
"""
Модель сделки (торга по цене), связанной 1:1 с принятым вызовом.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from src.common.clock import as_utc, utc_now
from src.common.constants import ActorRole, TransactionStatus, TRANSACTION_TERMINAL_STATUSES
from src.common.exceptions import InvalidInputError

# Поля по ролям
_ACCEPT_FIELDS = {
    ActorRole.DRIVER: "driver_accepted_price",
    ActorRole.CUSTOMER: "customer_accepted_price",
}
_RATING_FIELDS = {
    ActorRole.DRIVER: "driver_rating",
    ActorRole.CUSTOMER: "customer_rating",
}


class Transaction(BaseModel):
    """
    Сделка между клиентом и водителем.

    driver_rating: оценка, полученная водителем (её ставит клиент),
    customer_rating: оценка, полученная клиентом (её ставит водитель).
    """

    transaction_id: str = Field(default_factory=lambda: str(uuid4()), description="UUID сделки")
    call_id: str = Field(..., min_length=1, description="ID вызова")
    customer_id: str = Field(..., min_length=1, description="ID клиента")
    driver_id: str = Field(..., min_length=1, description="ID водителя")

    price: float = Field(..., gt=0, description="Текущая цена")
    status: TransactionStatus = Field(TransactionStatus.NEGOTIATING, description="Статус сделки")

    driver_accepted_price: bool = Field(False, description="Водитель принял текущую цену")
    customer_accepted_price: bool = Field(False, description="Клиент принял текущую цену")

    driver_rating: Optional[int] = Field(None, ge=1, le=5, description="Оценка водителя")
    customer_rating: Optional[int] = Field(None, ge=1, le=5, description="Оценка клиента")

    created_at: datetime = Field(default_factory=utc_now, description="Время создания (UTC)")

    @field_validator("created_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def check_invariants(self) -> "Transaction":
        if self.driver_id == self.customer_id:
            raise ValueError("Водитель и клиент сделки должны различаться")
        if self.status is TransactionStatus.AGREED and not self.both_accepted:
            raise ValueError("Согласованная сделка требует согласия обеих сторон")
        return self

    @property
    def both_accepted(self) -> bool:
        return self.driver_accepted_price and self.customer_accepted_price

    @property
    def is_terminal(self) -> bool:
        return self.status in TRANSACTION_TERMINAL_STATUSES

    @property
    def has_both_ratings(self) -> bool:
        return self.driver_rating is not None and self.customer_rating is not None

    def role_of(self, actor_id: str) -> ActorRole:
        """
        Роль участника в сделке.

        Raises:
            InvalidInputError: участник не является стороной сделки
        """
        if actor_id == self.driver_id:
            return ActorRole.DRIVER
        if actor_id == self.customer_id:
            return ActorRole.CUSTOMER
        raise InvalidInputError(f"{actor_id} не участвует в сделке {self.transaction_id}")

    def party_id(self, role: ActorRole) -> str:
        return self.driver_id if role is ActorRole.DRIVER else self.customer_id

    def has_accepted(self, role: ActorRole) -> bool:
        return getattr(self, _ACCEPT_FIELDS[role])

    def rating_of(self, role: ActorRole) -> Optional[int]:
        """Оценка, полученная стороной role."""
        return getattr(self, _RATING_FIELDS[role])

    @staticmethod
    def accept_field(role: ActorRole) -> str:
        return _ACCEPT_FIELDS[role]

    @staticmethod
    def rating_field(role: ActorRole) -> str:
        return _RATING_FIELDS[role]

    def evolve(self, **changes: Any) -> "Transaction":
        """Новая версия сделки с проверкой инвариантов модели."""
        return Transaction.model_validate({**self.model_dump(), **changes})
