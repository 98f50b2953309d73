# src/services/admin_api/dependencies.py
"""
Зависимости для Admin API.
Инициализация и управление ресурсами.
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from src.core.admin import AdminService
from src.infra.factory import close_store, init_store
from src.infra.store import DocumentStore

# Глобальные экземпляры ресурсов
_store: Optional[DocumentStore] = None
_admin_service: Optional[AdminService] = None
# Хранилище создано через init_store и закрывается через close_store
_owns_global_store = False


async def init_dependencies(store: DocumentStore | None = None) -> None:
    """Инициализация хранилища и сервисов."""
    global _store, _admin_service, _owns_global_store

    from src.common.logger import log_info
    from src.common.constants import TypeMsg

    _owns_global_store = store is None
    _store = store if store is not None else await init_store()
    _admin_service = AdminService(_store)

    await log_info("Admin API инициализирован", type_msg=TypeMsg.INFO)


async def close_dependencies() -> None:
    """Закрытие ресурсов."""
    global _store, _admin_service, _owns_global_store

    if _owns_global_store:
        await close_store()
    elif _store is not None:
        await _store.close()
    _owns_global_store = False
    _store = None
    _admin_service = None


def get_store() -> DocumentStore:
    """Получение хранилища документов."""
    if _store is None:
        raise RuntimeError("Хранилище не инициализировано")
    return _store


def get_admin_service() -> AdminService:
    """Получение экземпляра AdminService."""
    if _admin_service is None:
        raise RuntimeError("AdminService не инициализирован")
    return _admin_service


def verify_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    """Проверяет X-Admin-Token, если токен задан в конфигурации."""
    from src.config import settings

    expected = settings.admin.ADMIN_TOKEN
    if not expected:
        return
    if x_admin_token is None or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Неверный токен администратора",
        )
