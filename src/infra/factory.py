# src/infra/factory.py
"""
Выбор и жизненный цикл глобального хранилища документов.
"""

from __future__ import annotations

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.common.constants import TypeMsg
from src.common.exceptions import StoreUnavailableError
from src.common.logger import log_info
from src.infra.memory_store import MemoryDocumentStore
from src.infra.redis_client import close_redis, init_redis
from src.infra.redis_store import RedisDocumentStore
from src.infra.store import DocumentStore

_store: DocumentStore | None = None


def create_store(backend: str) -> DocumentStore:
    """
    Создаёт хранилище по имени бэкенда.

    Args:
        backend: redis или memory
    """
    if backend == "redis":
        return RedisDocumentStore()
    if backend == "memory":
        return MemoryDocumentStore()
    raise ValueError(f"Неизвестный бэкенд хранилища: {backend}")


def get_store() -> DocumentStore:
    """Возвращает глобальное хранилище, создавая его по конфигурации."""
    global _store
    if _store is None:
        from src.config import settings
        _store = create_store(settings.store.STORE_BACKEND)
    return _store


def set_store(store: DocumentStore | None) -> None:
    """Подменяет глобальное хранилище (тесты, встраивание)."""
    global _store
    _store = store


async def init_store() -> DocumentStore:
    """Подключает инфраструктуру выбранного бэкенда."""
    store = get_store()
    if isinstance(store, RedisDocumentStore):
        try:
            await init_redis()
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"Redis недоступен: {e}") from e
    await log_info(f"Хранилище готово: {type(store).__name__}", type_msg=TypeMsg.INFO)
    return store


async def close_store() -> None:
    """Закрывает подписки и соединения хранилища."""
    global _store
    if _store is None:
        return

    await _store.close()
    if isinstance(_store, RedisDocumentStore):
        await close_redis()
    _store = None
    await log_info("Хранилище закрыто", type_msg=TypeMsg.INFO)
