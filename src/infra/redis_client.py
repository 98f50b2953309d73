# src/infra/redis_client.py
"""
Клиент Redis: транспорт для хранилища документов.
Хеши с JSON-документами, списки, Pub/Sub и оптимистичные транзакции (WATCH/MULTI).
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
from redis.asyncio.client import PubSub, Pipeline

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg


class RedisClient:
    """
    Асинхронный клиент Redis.
    Поддерживает:
    - Хеш-операции с JSON-документами
    - Списки (append-only коллекции)
    - Публикацию и подписку (Pub/Sub)
    - Пайплайны с WATCH для условной записи
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Инициализация (вызывается только один раз благодаря Singleton)."""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "ride"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    @property
    def namespace(self) -> str:
        return self._namespace

    def make_key(self, key: str) -> str:
        """Добавляет namespace к ключу."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
        namespace: str | None = None,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей
        """
        if self._client is not None:
            return

        if url is None:
            from src.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            namespace = settings.redis.REDIS_NAMESPACE

        if namespace:
            self._namespace = namespace

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )

        try:
            await self._client.ping()
        except Exception as e:
            await log_error(f"Не удалось подключиться к Redis: {e}")
            await self._client.aclose()
            self._client = None
            raise

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def delete(self, key: str) -> int:
        """Удаляет ключ."""
        return await self.client.delete(self.make_key(key))

    async def exists(self, key: str) -> bool:
        """Проверяет существование ключа."""
        return await self.client.exists(self.make_key(key)) > 0

    # =========================================================================
    # HASH ОПЕРАЦИИ (JSON-документы)
    # =========================================================================

    async def hget_json(self, name: str, key: str) -> dict | None:
        """Получает JSON-документ из хеша."""
        data = await self.client.hget(self.make_key(name), key)
        if data is None:
            return None

        try:
            return json.loads(data)
        except json.JSONDecodeError:
            await log_error(f"Повреждённый документ {name}/{key}")
            return None

    async def hset_json(self, name: str, key: str, document: dict) -> int:
        """Сохраняет JSON-документ в хеш."""
        return await self.client.hset(
            self.make_key(name),
            key,
            json.dumps(document, ensure_ascii=False),
        )

    async def hgetall_json(self, name: str) -> dict[str, dict]:
        """Получает все документы хеша, пропуская повреждённые."""
        raw = await self.client.hgetall(self.make_key(name))
        result: dict[str, dict] = {}
        for key, data in raw.items():
            try:
                result[key] = json.loads(data)
            except json.JSONDecodeError:
                await log_error(f"Повреждённый документ {name}/{key}")
        return result

    # =========================================================================
    # LIST ОПЕРАЦИИ
    # =========================================================================

    async def rpush_json(self, name: str, document: dict) -> int:
        """Добавляет JSON-документ в конец списка."""
        return await self.client.rpush(
            self.make_key(name),
            json.dumps(document, ensure_ascii=False),
        )

    async def lrange_json(self, name: str, start: int = 0, end: int = -1) -> list[dict]:
        """Возвращает документы списка."""
        items = await self.client.lrange(self.make_key(name), start, end)
        return [json.loads(item) for item in items]

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    def channel(self, name: str) -> str:
        """Канал уведомлений об изменениях узла."""
        return self.make_key(f"changes:{name}")

    async def publish(self, name: str, message: str) -> int:
        """Публикует уведомление об изменении узла."""
        return await self.client.publish(self.channel(name), message)

    def pubsub(self) -> PubSub:
        """Создаёт новый объект Pub/Sub."""
        return self.client.pubsub()

    def pipeline(self, transaction: bool = True) -> Pipeline:
        """Создаёт пайплайн (MULTI/EXEC при transaction=True)."""
        return self.client.pipeline(transaction=transaction)

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """
        Проверяет здоровье подключения к Redis.

        Returns:
            True если подключение работает
        """
        try:
            return await self.client.ping()
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    """
    Возвращает глобальный экземпляр RedisClient.

    Returns:
        RedisClient
    """
    return RedisClient()


async def init_redis() -> None:
    """
    Инициализирует подключение к Redis.
    Использует настройки из конфигурации.
    """
    from src.config import settings

    redis_client = get_redis()
    await redis_client.connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )


async def close_redis() -> None:
    """
    Закрывает подключение к Redis.
    """
    redis_client = get_redis()
    await redis_client.disconnect()
    await log_info("Redis отключён", type_msg=TypeMsg.INFO)
