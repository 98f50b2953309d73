# src/core/admin/service.py
"""
Административные операции для тестовых и демо-окружений.
"""

from __future__ import annotations

from src.common.constants import RESETTABLE_COLLECTIONS, TypeMsg
from src.common.exceptions import AdminActionForbiddenError
from src.common.logger import log_info, log_warning
from src.infra.store import DocumentStore


class AdminService:
    """Деструктивный сброс активных вызовов и сделок."""

    def __init__(self, store: DocumentStore, reset_enabled: bool | None = None) -> None:
        if reset_enabled is None:
            from src.config import settings
            reset_enabled = settings.admin.ADMIN_RESET_ENABLED

        self._store = store
        self._reset_enabled = reset_enabled

    async def reset(self) -> list[str]:
        """
        Удаляет все документы calls и transactions.
        Позиции, рейтинги и история поездок не затрагиваются.

        Returns:
            Очищенные узлы

        Raises:
            AdminActionForbiddenError: сброс отключён конфигурацией
            StoreUnavailableError: хранилище недоступно
        """
        if not self._reset_enabled:
            await log_warning("Попытка сброса при ADMIN_RESET_ENABLED=false")
            raise AdminActionForbiddenError("Сброс отключён конфигурацией")

        cleared: list[str] = []
        for collection in RESETTABLE_COLLECTIONS:
            await self._store.delete_collection(collection.value)
            cleared.append(collection.value)

        await log_info(f"Сброс выполнен: {', '.join(cleared)}", type_msg=TypeMsg.WARNING)
        return cleared
