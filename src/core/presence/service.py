# src/core/presence/service.py
"""
Реестр присутствия.
Публикует позиции участников и отдаёт отфильтрованные снапшоты подписчикам.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Optional

from pydantic import ValidationError

from src.common.clock import Clock, utc_now
from src.common.constants import ActorRole, Collection, PaymentMethod, TypeMsg
from src.common.exceptions import InvalidInputError
from src.common.logger import log_info
from src.core.geo import GeoRegion, validate_coordinates
from src.core.presence.models import PresenceRecord
from src.infra.store import DocumentStore, Subscription, dump_document, parse_document


class PresenceRegistry:
    """
    Реестр присутствия участников (locations/{actor_id}).

    Фильтрация только на стороне чтения: устаревшие записи физически остаются
    в хранилище, но ни один читатель их не видит.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utc_now,
        liveness_seconds: int | None = None,
    ) -> None:
        """
        Args:
            store: Хранилище документов
            clock: Источник текущего времени
            liveness_seconds: Окно живости записи (из конфига если None)
        """
        if liveness_seconds is None:
            from src.config import settings
            liveness_seconds = settings.ride.PRESENCE_LIVENESS_SECONDS

        self._store = store
        self._clock = clock
        self._liveness = timedelta(seconds=liveness_seconds)

    async def publish(
        self,
        actor_id: str,
        latitude: float,
        longitude: float,
        role: ActorRole,
        available_seats: int = 0,
        passenger_count: int = 0,
        payment_methods: Iterable[PaymentMethod] = (),
        rating: Optional[float] = None,
    ) -> PresenceRecord:
        """
        Перезаписывает позицию участника.

        Args:
            actor_id: ID участника
            latitude: Широта
            longitude: Долгота
            role: Роль участника
            available_seats: Свободные места
            passenger_count: Количество пассажиров
            payment_methods: Принимаемые способы оплаты
            rating: Текущий рейтинг (необязательно)

        Returns:
            Записанная запись присутствия

        Raises:
            InvalidInputError: Некорректные координаты, места или роль
        """
        validate_coordinates(latitude, longitude)

        try:
            record = PresenceRecord(
                actor_id=actor_id,
                latitude=latitude,
                longitude=longitude,
                role=role,
                available_seats=available_seats,
                passenger_count=passenger_count,
                payment_methods=set(payment_methods),
                rating=rating,
                last_updated=self._clock(),
            )
        except ValidationError as e:
            raise InvalidInputError(f"Некорректная запись присутствия {actor_id}: {e.error_count()} ошибок") from e

        await self._store.set(Collection.LOCATIONS.value, actor_id, dump_document(record))
        return record

    async def get(self, actor_id: str) -> Optional[PresenceRecord]:
        """Возвращает живую запись участника или None."""
        data = await self._store.get(Collection.LOCATIONS.value, actor_id)
        record = await parse_document(PresenceRecord, data, source=f"locations/{actor_id}")
        if record is None or not record.is_live(self._clock(), self._liveness):
            return None
        return record

    async def subscribe(
        self,
        target_role: ActorRole,
        region: Optional[GeoRegion] = None,
    ) -> Subscription[dict[str, PresenceRecord]]:
        """
        Подписка на живых участников указанной роли.

        Каждый снапшот пересчитывается в момент получения:
        чужая роль, устаревшие записи и записи вне области отбрасываются.
        """
        async def visible(snapshot: dict[str, dict]) -> dict[str, PresenceRecord]:
            now = self._clock()
            result: dict[str, PresenceRecord] = {}

            for actor_id, data in snapshot.items():
                record = await parse_document(PresenceRecord, data, source=f"locations/{actor_id}")
                if record is None or record.role != target_role:
                    continue
                if not record.is_live(now, self._liveness):
                    continue
                if region is not None and not region.contains(record.latitude, record.longitude):
                    continue
                result[actor_id] = record

            await log_info(
                f"Присутствие {target_role.value}: всего={len(snapshot)} видимо={len(result)}",
                type_msg=TypeMsg.DEBUG,
            )
            return result

        return await self._store.subscribe_collection(Collection.LOCATIONS.value, transform=visible)
