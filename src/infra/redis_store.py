# src/infra/redis_store.py
"""
Хранилище документов поверх Redis.

Раскладка ключей:
- {namespace}:{collection}         : хеш key -> JSON-документ
- {namespace}:{collection} (list)  : append-only коллекции (ride_history)
- {namespace}:changes:{collection} : канал Pub/Sub, в который пишется изменённый ключ

Подписчик при каждом уведомлении перечитывает узел целиком.
"""

from __future__ import annotations

import asyncio
import copy
import json
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable

from redis.asyncio.client import PubSub
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.common.constants import TypeMsg
from src.common.exceptions import StoreUnavailableError
from src.common.logger import log_error, log_info
from src.infra.redis_client import RedisClient, get_redis
from src.infra.store import DocumentStore, Mutator, Subscription, Transform

# Ключ уведомления при очистке узла
WILDCARD = "*"


@asynccontextmanager
async def translate_errors() -> AsyncIterator[None]:
    """Переводит ошибки связи Redis в StoreUnavailableError."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        raise StoreUnavailableError(f"Redis недоступен: {e}") from e


class RedisDocumentStore(DocumentStore):
    """Хранилище документов на Redis (хеши + Pub/Sub)."""

    def __init__(self, redis_client: RedisClient | None = None, poll_timeout: float = 1.0) -> None:
        """
        Args:
            redis_client: Клиент Redis (по умолчанию глобальный)
            poll_timeout: Таймаут ожидания сообщения Pub/Sub в секундах
        """
        self._redis = redis_client or get_redis()
        self._poll_timeout = poll_timeout
        self._listeners: set[asyncio.Task] = set()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # =========================================================================
    # ЧТЕНИЕ И ЗАПИСЬ
    # =========================================================================

    async def get(self, collection: str, key: str) -> dict | None:
        async with translate_errors():
            return await self._redis.hget_json(collection, key)

    async def set(self, collection: str, key: str, document: dict) -> None:
        async with translate_errors():
            async with self._redis.pipeline() as pipe:
                pipe.hset(self._redis.make_key(collection), key, json.dumps(document, ensure_ascii=False))
                pipe.publish(self._redis.channel(collection), key)
                await pipe.execute()

    async def update(self, collection: str, key: str, mutate: Mutator) -> tuple[dict | None, bool]:
        hash_key = self._redis.make_key(collection)

        async with translate_errors():
            async with self._redis.pipeline() as pipe:
                while True:
                    try:
                        await pipe.watch(hash_key)
                        raw = await pipe.hget(hash_key, key)
                        current = json.loads(raw) if raw else None

                        updated = mutate(copy.deepcopy(current))
                        if updated is None:
                            await pipe.unwatch()
                            return current, False

                        pipe.multi()
                        pipe.hset(hash_key, key, json.dumps(updated, ensure_ascii=False))
                        pipe.publish(self._redis.channel(collection), key)
                        await pipe.execute()
                        return updated, True
                    except WatchError:
                        # Узел изменился между чтением и записью, повторяем
                        await log_info(
                            f"Конфликт записи {collection}/{key}, повтор",
                            type_msg=TypeMsg.DEBUG,
                        )
                        continue

    async def query(self, collection: str, field: str, value: Any) -> dict[str, dict]:
        documents = await self.list(collection)
        return {key: doc for key, doc in documents.items() if doc.get(field) == value}

    async def list(self, collection: str) -> dict[str, dict]:
        async with translate_errors():
            return await self._redis.hgetall_json(collection)

    async def append(self, collection: str, document: dict) -> None:
        async with translate_errors():
            await self._redis.rpush_json(collection, document)

    async def read_log(self, collection: str) -> list[dict]:
        async with translate_errors():
            return await self._redis.lrange_json(collection)

    async def delete_collection(self, collection: str) -> None:
        async with translate_errors():
            async with self._redis.pipeline() as pipe:
                pipe.delete(self._redis.make_key(collection))
                pipe.publish(self._redis.channel(collection), WILDCARD)
                await pipe.execute()

    # =========================================================================
    # ПОДПИСКИ
    # =========================================================================

    async def subscribe_collection(
        self,
        collection: str,
        *,
        field: str | None = None,
        value: Any = None,
        transform: Transform | None = None,
    ) -> Subscription:
        async def fetch() -> dict[str, dict]:
            if field is None:
                return await self._redis.hgetall_json(collection)
            documents = await self._redis.hgetall_json(collection)
            return {key: doc for key, doc in documents.items() if doc.get(field) == value}

        subscription = Subscription(collection, transform)
        return await self._start_listener(subscription, collection, fetch, key=None)

    async def subscribe_document(
        self,
        collection: str,
        key: str,
        *,
        transform: Transform | None = None,
    ) -> Subscription:
        async def fetch() -> dict | None:
            return await self._redis.hget_json(collection, key)

        subscription = Subscription(f"{collection}/{key}", transform)
        return await self._start_listener(subscription, collection, fetch, key=key)

    async def _start_listener(
        self,
        subscription: Subscription,
        collection: str,
        fetch: Callable[[], Awaitable[Any]],
        key: str | None,
    ) -> Subscription:
        pubsub = self._redis.pubsub()
        async with translate_errors():
            # Подписываемся до первого чтения, чтобы не потерять изменение между ними
            await pubsub.subscribe(self._redis.channel(collection))
            subscription.push(await fetch())

        task = asyncio.create_task(self._listen(subscription, pubsub, fetch, key))
        self._listeners.add(task)
        task.add_done_callback(self._listeners.discard)
        subscription.on_close(partial(self._stop_listener, task, pubsub))
        return subscription

    async def _listen(
        self,
        subscription: Subscription,
        pubsub: PubSub,
        fetch: Callable[[], Awaitable[Any]],
        key: str | None,
    ) -> None:
        """Слушает канал узла и доставляет свежий снапшот на каждое изменение."""
        while not subscription.closed:
            try:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self._poll_timeout,
                )

                if message is None:
                    continue

                changed = message.get("data")
                if key is not None and changed not in (key, WILDCARD):
                    continue

                subscription.push(await fetch())

            except asyncio.CancelledError:
                break
            except RedisError as e:
                # Логируем ошибку, но продолжаем работу
                await log_error(f"Ошибка подписки {subscription.name}: {e}")
                await asyncio.sleep(1)

    async def _stop_listener(self, task: asyncio.Task, pubsub: PubSub) -> None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        try:
            await pubsub.unsubscribe()
            await pubsub.aclose()
        except RedisError as e:
            await log_error(f"Ошибка закрытия Pub/Sub: {e}")

    async def health_check(self) -> bool:
        return await self._redis.health_check()

    async def close(self) -> None:
        for task in list(self._listeners):
            task.cancel()
        if self._listeners:
            await asyncio.gather(*self._listeners, return_exceptions=True)
