# src/core/calls/service.py
"""
Реестр вызовов.
Создание, листинг открытых вызовов, захват вызова водителем и переходы статусов.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from src.common.clock import Clock, utc_now
from src.common.constants import ActorRole, CallStatus, Collection, TypeMsg
from src.common.exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from src.common.logger import log_info
from src.common.validators import validate_actor_id, validate_price
from src.core.calls.models import Call
from src.core.calls.state_machine import CallStateMachine
from src.infra.store import DocumentStore, Subscription, dump_document, parse_document

CALLS = Collection.CALLS.value


class CallRegistry:
    """
    Реестр вызовов (calls/{call_id}).

    Захват вызова: чтение с последующей условной записью. При atomic_claims
    чтение и запись выполняются атомарной условной записью хранилища, иначе
    два водителя в окне между чтением и записью оба увидят Open и оба запишут
    (выигрывает последняя запись).
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utc_now,
        staleness_hours: float | None = None,
        atomic_claims: bool | None = None,
    ) -> None:
        """
        Args:
            store: Хранилище документов
            clock: Источник текущего времени
            staleness_hours: Окно устаревания открытых вызовов (из конфига если None)
            atomic_claims: Захват через атомарную условную запись (из конфига если None)
        """
        if staleness_hours is None or atomic_claims is None:
            from src.config import settings
            if staleness_hours is None:
                staleness_hours = settings.ride.CALL_STALENESS_HOURS
            if atomic_claims is None:
                atomic_claims = settings.ride.ATOMIC_CLAIMS

        self._store = store
        self._clock = clock
        self._staleness = timedelta(hours=staleness_hours)
        self._atomic_claims = atomic_claims

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_call(self, call_id: str) -> Optional[Call]:
        """Точечное чтение вызова."""
        data = await self._store.get(CALLS, call_id)
        return await parse_document(Call, data, source=f"calls/{call_id}")

    async def find_active_call(self, actor_id: str, role: ActorRole) -> Optional[Call]:
        """
        Ищет незавершённый вызов участника (восстановление сессии).

        Клиент: инициатор вызова, водитель: принявший его.
        Устаревшие вызовы не учитываются.
        """
        documents = await self._store.list(CALLS)
        now = self._clock()

        candidates: list[Call] = []
        for call_id, data in documents.items():
            call = await parse_document(Call, data, source=f"calls/{call_id}")
            if call is None or not call.is_active or call.is_stale(now, self._staleness):
                continue
            if call.participant_id(role) == actor_id:
                candidates.append(call)

        if not candidates:
            return None
        return max(candidates, key=lambda c: c.created_at)

    # =========================================================================
    # ПОДПИСКИ
    # =========================================================================

    async def list_open_calls(self) -> Subscription[list[Call]]:
        """
        Подписка на открытые вызовы.

        Хранилище фильтрует по status == Open; устаревшие по created_at
        вызовы отбрасываются на клиенте при каждом снапшоте.
        """
        async def active(snapshot: dict[str, dict]) -> list[Call]:
            now = self._clock()
            result: list[Call] = []

            for call_id, data in snapshot.items():
                call = await parse_document(Call, data, source=f"calls/{call_id}")
                if call is None or call.status is not CallStatus.OPEN:
                    continue
                if call.is_stale(now, self._staleness):
                    continue
                result.append(call)

            await log_info(
                f"Открытые вызовы: всего={len(snapshot)} активных={len(result)}",
                type_msg=TypeMsg.DEBUG,
            )
            return sorted(result, key=lambda c: c.created_at)

        return await self._store.subscribe_collection(
            CALLS,
            field="status",
            value=CallStatus.OPEN.value,
            transform=active,
        )

    async def observe_call(self, call_id: str) -> Subscription[Optional[Call]]:
        """Точечная подписка на один вызов, без фильтра листинга."""
        async def parse(data: dict | None) -> Optional[Call]:
            return await parse_document(Call, data, source=f"calls/{call_id}")

        return await self._store.subscribe_document(CALLS, call_id, transform=parse)

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ ВЫЗОВА
    # =========================================================================

    async def open_call(self, call: Call) -> None:
        """
        Публикует новый открытый вызов.

        Raises:
            InvalidInputError: вызов не открыт, инициатор не клиент или цена некорректна
            StoreUnavailableError: хранилище недоступно
        """
        validate_actor_id(call.initiator_id)
        validate_price(call.offer_price)
        if call.initiator_role is not ActorRole.CUSTOMER:
            raise InvalidInputError("Вызов может создать только клиент")
        if call.status is not CallStatus.OPEN or call.accepted_by is not None:
            raise InvalidInputError("Новый вызов должен быть в статусе Open")

        await self._store.set(CALLS, call.call_id, dump_document(call))
        await log_info(
            f"Вызов {call.call_id} открыт клиентом {call.initiator_id}, цена {call.offer_price}",
            type_msg=TypeMsg.INFO,
        )

    async def claim_call(self, call_id: str, claimant_id: str, new_transaction_id: str) -> bool:
        """
        Пытается захватить открытый вызов.

        Returns:
            True если вызов переведён в Accepted этим водителем,
            False если вызов уже не открыт или отсутствует
        """
        validate_actor_id(claimant_id)

        if self._atomic_claims:
            claimed = await self._claim_atomic(call_id, claimant_id, new_transaction_id)
        else:
            claimed = await self._claim_read_then_write(call_id, claimant_id, new_transaction_id)

        if claimed:
            await log_info(
                f"Вызов {call_id} принят водителем {claimant_id}, сделка {new_transaction_id}",
                type_msg=TypeMsg.INFO,
            )
        else:
            await log_info(
                f"Водитель {claimant_id} не успел принять вызов {call_id}",
                type_msg=TypeMsg.DEBUG,
            )
        return claimed

    async def _claim_read_then_write(self, call_id: str, claimant_id: str, transaction_id: str) -> bool:
        call = await self.get_call(call_id)
        if call is None or call.status is not CallStatus.OPEN:
            return False

        accepted = call.evolve(
            status=CallStatus.ACCEPTED,
            accepted_by=claimant_id,
            transaction_id=transaction_id,
        )
        await self._store.set(CALLS, call_id, dump_document(accepted))
        return True

    async def _claim_atomic(self, call_id: str, claimant_id: str, transaction_id: str) -> bool:
        def claim(current: dict | None) -> dict | None:
            if current is None:
                return None
            try:
                call = Call.model_validate(current)
            except ValidationError:
                return None
            if call.status is not CallStatus.OPEN:
                return None
            accepted = call.evolve(
                status=CallStatus.ACCEPTED,
                accepted_by=claimant_id,
                transaction_id=transaction_id,
            )
            return dump_document(accepted)

        _, applied = await self._store.update(CALLS, call_id, claim)
        return applied

    async def cancel_call(self, call_id: str) -> None:
        """
        Отменяет вызов. Идемпотентно: отсутствующий или завершённый вызов не меняется.
        """
        call = await self.get_call(call_id)
        if call is None:
            return
        if not CallStateMachine.can_transition(call.status, CallStatus.CANCELLED):
            await log_info(
                f"Вызов {call_id} уже в статусе {call.status.value}, отмена пропущена",
                type_msg=TypeMsg.DEBUG,
            )
            return

        cancelled = call.evolve(status=CallStatus.CANCELLED, transaction_id=None)
        await self._store.set(CALLS, call_id, dump_document(cancelled))
        await log_info(f"Вызов {call_id} отменён", type_msg=TypeMsg.INFO)

    async def complete_call(self, call_id: str) -> None:
        """
        Завершает принятый вызов.

        Raises:
            NotFoundError: вызов отсутствует
            InvalidTransitionError: вызов не в статусе Accepted
        """
        call = await self.get_call(call_id)
        if call is None:
            raise NotFoundError("Call", call_id)
        if call.status is CallStatus.COMPLETED:
            return
        if not CallStateMachine.can_transition(call.status, CallStatus.COMPLETED):
            raise InvalidTransitionError("Call", call.status.value, "complete")

        completed = call.evolve(status=CallStatus.COMPLETED)
        await self._store.set(CALLS, call_id, dump_document(completed))
        await log_info(f"Вызов {call_id} завершён", type_msg=TypeMsg.INFO)
