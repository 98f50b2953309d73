# src/core/negotiation/service.py
"""
Движок торга по цене.

Каждое изменение сделки: «применить переход, если он ещё допустим»:
документ перечитывается, инварианты проверяются и запись выполняется
атомарной условной записью хранилища. Переход, недопустимый в текущем
статусе, поднимает InvalidTransitionError до записи.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Mapping, Optional
from uuid import uuid4

from pydantic import ValidationError

from src.common.clock import Clock, utc_now
from src.common.constants import ActorRole, CallStatus, Collection, TransactionStatus, TypeMsg
from src.common.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from src.common.logger import log_info, log_warning
from src.common.validators import validate_actor_id, validate_price, validate_rating
from src.core.calls.service import CallRegistry
from src.core.negotiation.models import Transaction
from src.core.negotiation.state_machine import TransactionStateMachine
from src.infra.store import SKIP, DocumentStore, Subscription, dump_document, parse_document

if TYPE_CHECKING:
    from src.core.history.service import RideHistoryService
    from src.core.ratings.service import RatingAggregator

TRANSACTIONS = Collection.TRANSACTIONS.value

# Переход: текущая сделка -> новая версия или None (запись не нужна)
Step = Callable[[Transaction], Optional[Transaction]]


class NegotiationEngine:
    """
    Двусторонний протокол предложений и согласий над сделкой.

    Сделка согласована, только когда обе стороны приняли одну и ту же цену.
    Любое изменение цены сбрасывает согласие второй стороны.
    """

    def __init__(
        self,
        store: DocumentStore,
        calls: CallRegistry,
        history: Optional["RideHistoryService"] = None,
        ratings: Optional["RatingAggregator"] = None,
        allow_renegotiation: bool | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            store: Хранилище документов
            calls: Реестр вызовов
            history: История поездок (по умолчанию поверх того же хранилища)
            ratings: Агрегатор рейтингов (по умолчанию поверх того же хранилища)
            allow_renegotiation: Разрешить новое предложение после согласования (из конфига если None)
            clock: Источник текущего времени
        """
        if allow_renegotiation is None:
            from src.config import settings
            allow_renegotiation = settings.ride.ALLOW_RENEGOTIATION_AFTER_AGREEMENT

        if history is None:
            from src.core.history.service import RideHistoryService
            history = RideHistoryService(store, clock)
        if ratings is None:
            from src.core.ratings.service import RatingAggregator
            ratings = RatingAggregator(store)

        self._store = store
        self._calls = calls
        self._history = history
        self._ratings = ratings
        self._allow_renegotiation = allow_renegotiation
        self._clock = clock

    # =========================================================================
    # ЧТЕНИЕ И СОЗДАНИЕ
    # =========================================================================

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        data = await self._store.get(TRANSACTIONS, transaction_id)
        return await parse_document(Transaction, data, source=f"transactions/{transaction_id}")

    async def create_transaction(self, tx: Transaction) -> None:
        """Идемпотентная запись сделки целиком (перезапись по ID)."""
        await self._store.set(TRANSACTIONS, tx.transaction_id, dump_document(tx))

    async def start_negotiation(self, call_id: str, driver_id: str) -> Optional[Transaction]:
        """
        Водитель принимает вызов и открывает торг.

        Захват вызова завершается до записи сделки. Цена клиента
        считается принятой клиентом.

        Returns:
            Новая сделка или None, если вызов уже принят другим водителем

        Raises:
            InvalidInputError: водитель совпадает с клиентом
        """
        validate_actor_id(driver_id)

        call = await self._calls.get_call(call_id)
        if call is None or call.status is not CallStatus.OPEN:
            await log_info(
                f"Вызов {call_id} недоступен для водителя {driver_id}",
                type_msg=TypeMsg.DEBUG,
            )
            return None
        if call.initiator_id == driver_id:
            raise InvalidInputError("Клиент не может принять собственный вызов")

        transaction_id = str(uuid4())
        if not await self._calls.claim_call(call_id, driver_id, transaction_id):
            return None

        tx = Transaction(
            transaction_id=transaction_id,
            call_id=call_id,
            customer_id=call.initiator_id,
            driver_id=driver_id,
            price=call.offer_price,
            status=TransactionStatus.NEGOTIATING,
            customer_accepted_price=True,
            driver_accepted_price=False,
        )
        await self.create_transaction(tx)
        await log_info(
            f"Сделка {transaction_id} открыта по вызову {call_id}, цена {tx.price}",
            type_msg=TypeMsg.INFO,
        )
        return tx

    # =========================================================================
    # ПЕРЕХОДЫ
    # =========================================================================

    async def _apply(self, transaction_id: str, step: Step) -> tuple[Transaction, bool]:
        """
        Применяет переход к текущей версии сделки.

        Returns:
            (итоговая сделка, была ли выполнена запись)

        Raises:
            NotFoundError: сделка отсутствует или повреждена
        """
        def mutate(current: dict | None) -> dict | None:
            if current is None:
                raise NotFoundError("Transaction", transaction_id)
            updated = step(Transaction.model_validate(current))
            return dump_document(updated) if updated is not None else None

        try:
            document, applied = await self._store.update(TRANSACTIONS, transaction_id, mutate)
        except ValidationError:
            await log_warning(f"Невалидный документ transactions/{transaction_id}")
            raise NotFoundError("Transaction", transaction_id) from None

        return Transaction.model_validate(document), applied

    async def make_offer(self, transaction_id: str, proposer_id: str, price: float) -> Transaction:
        """
        Новая цена от одной из сторон.

        Предложивший автоматически согласен со своей ценой, согласие
        второй стороны сбрасывается, статус возвращается в Negotiating.

        Raises:
            InvalidInputError: некорректная цена или участник не сторона сделки
            InvalidTransitionError: сделка завершена, отменена или согласована
                при запрещённом пересогласовании
        """
        price = validate_price(price)
        validate_actor_id(proposer_id)

        def offer(tx: Transaction) -> Transaction:
            role = tx.role_of(proposer_id)
            if tx.is_terminal:
                raise InvalidTransitionError("Transaction", tx.status.value, "make_offer")
            if tx.status is TransactionStatus.AGREED and not self._allow_renegotiation:
                raise InvalidTransitionError("Transaction", tx.status.value, "make_offer")

            return tx.evolve(**{
                "price": price,
                "status": TransactionStatus.NEGOTIATING,
                Transaction.accept_field(role): True,
                Transaction.accept_field(role.counterpart): False,
            })

        tx, _ = await self._apply(transaction_id, offer)
        await log_info(
            f"Сделка {transaction_id}: {tx.role_of(proposer_id).value} предлагает {price}",
            type_msg=TypeMsg.INFO,
        )
        return tx

    async def accept_current_offer(self, transaction_id: str, accepter_id: str) -> Transaction:
        """
        Согласие с текущей ценой.

        Повторное согласие ничего не меняет. Когда согласны обе стороны,
        сделка переходит в Agreed и поездка пишется в историю.

        Raises:
            InvalidInputError: участник не сторона сделки
            InvalidTransitionError: сделка завершена или отменена
        """
        validate_actor_id(accepter_id)

        def accept(tx: Transaction) -> Optional[Transaction]:
            role = tx.role_of(accepter_id)
            if tx.is_terminal:
                raise InvalidTransitionError("Transaction", tx.status.value, "accept")
            if tx.status is TransactionStatus.AGREED:
                return None
            # Оба флага уже стоят, но статус Negotiating: доводим до Agreed
            if tx.has_accepted(role) and not tx.both_accepted:
                return None

            updated = tx.evolve(**{Transaction.accept_field(role): True})
            if updated.both_accepted and TransactionStateMachine.can_transition(
                tx.status, TransactionStatus.AGREED
            ):
                updated = updated.evolve(status=TransactionStatus.AGREED)
            return updated

        tx, applied = await self._apply(transaction_id, accept)
        if not applied:
            return tx

        await log_info(
            f"Сделка {transaction_id}: {tx.role_of(accepter_id).value} принимает цену {tx.price}",
            type_msg=TypeMsg.INFO,
        )
        if tx.status is TransactionStatus.AGREED:
            await log_info(
                f"Сделка {transaction_id} согласована по цене {tx.price}",
                type_msg=TypeMsg.INFO,
            )
            call = await self._calls.get_call(tx.call_id)
            await self._history.record(tx, call)
        return tx

    async def cancel(self, transaction_id: str, cancel_call: bool = True) -> None:
        """
        Отмена сделки из любого незавершённого статуса. Идемпотентна.

        Args:
            transaction_id: ID сделки
            cancel_call: Отменить и связанный вызов
        """
        def cancel_step(tx: Transaction) -> Optional[Transaction]:
            if not TransactionStateMachine.can_transition(tx.status, TransactionStatus.CANCELLED):
                return None
            return tx.evolve(status=TransactionStatus.CANCELLED)

        try:
            tx, applied = await self._apply(transaction_id, cancel_step)
        except NotFoundError:
            await log_info(f"Сделка {transaction_id} не найдена, отмена пропущена", type_msg=TypeMsg.DEBUG)
            return

        if applied:
            await log_info(f"Сделка {transaction_id} отменена", type_msg=TypeMsg.INFO)
        if cancel_call:
            await self._calls.cancel_call(tx.call_id)

    async def complete(
        self,
        transaction_id: str,
        ratings: Mapping[ActorRole, int] | None = None,
    ) -> Transaction:
        """
        Завершение поездки.

        Переданные оценки ({роль оценивающего: звёзды}) записываются через
        агрегатор рейтингов. Сделка переходит в Completed, когда обе оценки
        уже в записи; до этого возвращается без изменений.

        Raises:
            InvalidInputError: некорректная оценка или роль
            NotFoundError: сделка не найдена
            InvalidTransitionError: цена ещё не согласована или сделка отменена
        """
        validated: dict[ActorRole, int] = {}
        for role, stars in (ratings or {}).items():
            try:
                role = ActorRole(role)
            except ValueError:
                raise InvalidInputError(f"Неизвестная роль: {role!r}") from None
            validated[role] = validate_rating(stars)

        tx = await self.get_transaction(transaction_id)
        if tx is None:
            raise NotFoundError("Transaction", transaction_id)
        if tx.status is TransactionStatus.COMPLETED:
            return tx
        if tx.status is not TransactionStatus.AGREED:
            raise InvalidTransitionError("Transaction", tx.status.value, "complete")

        # Все слоты проверяются до первой записи
        for rater_role in validated:
            if tx.rating_of(rater_role.counterpart) is not None:
                raise InvalidTransitionError(
                    "Transaction", tx.status.value, f"rate {rater_role.counterpart.value} twice"
                )

        try:
            for rater_role, stars in validated.items():
                await self._ratings.submit_rating(transaction_id, rater_role, stars)
        finally:
            tx = await self._finish(transaction_id)
        return tx

    async def _finish(self, transaction_id: str) -> Transaction:
        """Переводит сделку в Completed, если обе оценки уже в записи."""
        def finish(current: Transaction) -> Optional[Transaction]:
            if current.status is TransactionStatus.COMPLETED or not current.has_both_ratings:
                return None
            if not TransactionStateMachine.can_transition(current.status, TransactionStatus.COMPLETED):
                raise InvalidTransitionError("Transaction", current.status.value, "complete")
            return current.evolve(status=TransactionStatus.COMPLETED)

        tx, applied = await self._apply(transaction_id, finish)
        if applied:
            await self._calls.complete_call(tx.call_id)
            await log_info(f"Сделка {transaction_id} завершена", type_msg=TypeMsg.INFO)
        return tx

    # =========================================================================
    # ПОДПИСКИ
    # =========================================================================

    async def observe_transaction(
        self,
        transaction_id: str,
        active_call_id: str,
    ) -> Subscription[Optional[Transaction]]:
        """
        Подписка на сделку в рамках активного вызова подписчика.

        Обновление с чужим call_id отбрасывается и логируется.
        """
        async def scoped(data: dict | None) -> Optional[Transaction]:
            tx = await parse_document(Transaction, data, source=f"transactions/{transaction_id}")
            if tx is not None and tx.call_id != active_call_id:
                await log_warning(
                    f"Сделка {transaction_id} относится к вызову {tx.call_id}, "
                    f"ожидался {active_call_id}: обновление отброшено",
                )
                return SKIP
            return tx

        return await self._store.subscribe_document(TRANSACTIONS, transaction_id, transform=scoped)
