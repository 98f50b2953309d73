# src/core/ratings/service.py
"""
Агрегация рейтингов после поездки.
"""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from src.common.constants import ActorRole, Collection, TransactionStatus, TypeMsg
from src.common.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from src.common.logger import log_info
from src.common.validators import validate_rating
from src.core.negotiation.models import Transaction
from src.core.ratings.models import RatingAggregate
from src.infra.store import DocumentStore, dump_document, parse_document

TRANSACTIONS = Collection.TRANSACTIONS.value
USERS = Collection.USERS.value

# Оценку можно поставить только после согласования цены
RATEABLE_STATUSES = (TransactionStatus.AGREED, TransactionStatus.COMPLETED)


class RatingAggregator:
    """
    Пишет оценку в сделку и обновляет рейтинг оценённой стороны (users/{actor_id}).

    Обновление агрегата: чтение-изменение-запись без блокировок: две
    одновременные оценки одного участника могут потерять одно обновление.
    """

    def __init__(
        self,
        store: DocumentStore,
        default_rating: float | None = None,
        min_rating: int | None = None,
        max_rating: int | None = None,
    ) -> None:
        if default_rating is None or min_rating is None or max_rating is None:
            from src.config import settings
            if default_rating is None:
                default_rating = settings.ride.DEFAULT_RATING
            if min_rating is None:
                min_rating = settings.ride.MIN_RATING
            if max_rating is None:
                max_rating = settings.ride.MAX_RATING

        self._store = store
        self._default_rating = default_rating
        self._min_rating = min_rating
        self._max_rating = max_rating

    async def get_rating(self, actor_id: str) -> RatingAggregate:
        """Рейтинг участника; без оценок: значение по умолчанию."""
        document = await self._store.get(USERS, actor_id)
        if document and document.get("rating") is not None:
            aggregate = await parse_document(
                RatingAggregate, document["rating"], source=f"users/{actor_id}/rating"
            )
            if aggregate is not None:
                return aggregate
        return RatingAggregate(average=self._default_rating, count=0)

    async def submit_rating(self, transaction_id: str, rater_role: ActorRole, rating: int) -> float:
        """
        Оценка второй стороны сделки.

        Водитель оценивает клиента (customer_rating), клиент: водителя (driver_rating).

        Returns:
            Новый средний рейтинг оценённой стороны

        Raises:
            InvalidInputError: некорректная оценка или роль
            NotFoundError: сделка не найдена
            InvalidTransitionError: цена не согласована или оценка уже выставлена
        """
        rating = validate_rating(rating, self._min_rating, self._max_rating)
        try:
            rater_role = ActorRole(rater_role)
        except ValueError:
            raise InvalidInputError(f"Неизвестная роль: {rater_role!r}") from None

        rated_role = rater_role.counterpart
        field = Transaction.rating_field(rated_role)

        def write_rating(current: dict | None) -> dict | None:
            if current is None:
                raise NotFoundError("Transaction", transaction_id)
            tx = Transaction.model_validate(current)
            if tx.status not in RATEABLE_STATUSES:
                raise InvalidTransitionError("Transaction", tx.status.value, "rate")
            if tx.rating_of(rated_role) is not None:
                raise InvalidTransitionError("Transaction", tx.status.value, f"rate {rated_role.value} twice")
            return dump_document(tx.evolve(**{field: rating}))

        try:
            document, _ = await self._store.update(TRANSACTIONS, transaction_id, write_rating)
        except ValidationError:
            raise NotFoundError("Transaction", transaction_id) from None

        rated_id = Transaction.model_validate(document).party_id(rated_role)
        aggregate = await self._apply_rating(rated_id, rating)

        await log_info(
            f"Оценка {rating} для {rated_role.value} {rated_id} по сделке {transaction_id}: "
            f"средняя {aggregate.average:.2f} ({aggregate.count})",
            type_msg=TypeMsg.INFO,
        )
        return aggregate.average

    async def _apply_rating(self, actor_id: str, rating: int) -> RatingAggregate:
        updated = (await self.get_rating(actor_id)).with_rating(rating)

        # Остальные поля профиля сохраняются
        document: Optional[dict] = await self._store.get(USERS, actor_id)
        document = dict(document or {})
        document["rating"] = dump_document(updated)
        await self._store.set(USERS, actor_id, document)
        return updated
