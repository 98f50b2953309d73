# src/core/history/service.py
"""
История поездок (ride_history, append-only).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from src.common.clock import Clock, utc_now
from src.common.constants import Collection, TypeMsg
from src.common.exceptions import StoreUnavailableError
from src.common.logger import log_error, log_info
from src.core.history.models import RideHistoryRecord
from src.infra.store import DocumentStore, dump_document, parse_document

if TYPE_CHECKING:
    from src.core.calls.models import Call
    from src.core.negotiation.models import Transaction

RIDE_HISTORY = Collection.RIDE_HISTORY.value


class RideHistoryService:
    """Пишет снимок поездки в момент согласования цены."""

    def __init__(self, store: DocumentStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def record(self, tx: "Transaction", call: Optional["Call"] = None) -> Optional[RideHistoryRecord]:
        """
        Добавляет запись о согласованной поездке.

        Ошибка записи логируется и не прерывает торг.

        Args:
            tx: Согласованная сделка
            call: Исходный вызов (источник координат)

        Returns:
            Записанная запись или None при ошибке хранилища
        """
        record = RideHistoryRecord(
            transaction_id=tx.transaction_id,
            original_call_id=tx.call_id,
            customer_id=tx.customer_id,
            driver_id=tx.driver_id,
            price=tx.price,
            start_lat=call.pickup_lat if call else 0.0,
            start_lon=call.pickup_lon if call else 0.0,
            dest_lat=call.dest_lat if call and call.dest_lat is not None else 0.0,
            dest_lon=call.dest_lon if call and call.dest_lon is not None else 0.0,
            recorded_at=self._clock(),
        )

        try:
            await self._store.append(RIDE_HISTORY, dump_document(record))
        except StoreUnavailableError as e:
            await log_error(f"Не удалось записать историю поездки {tx.transaction_id}: {e}")
            return None

        await log_info(
            f"История: поездка {tx.transaction_id} за {tx.price} записана",
            type_msg=TypeMsg.INFO,
        )
        return record

    async def list_records(self) -> list[RideHistoryRecord]:
        """Записи истории в порядке добавления."""
        records: list[RideHistoryRecord] = []
        for index, data in enumerate(await self._store.read_log(RIDE_HISTORY)):
            record = await parse_document(RideHistoryRecord, data, source=f"ride_history/{index}")
            if record is not None:
                records.append(record)
        return records
