# src/infra/memory_store.py
"""
Хранилище документов в памяти процесса.
Повторяет семантику Redis-хранилища: копии документов, снапшоты узла целиком,
точка переключения на каждой операции. Используется в тестах и демо-режиме.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from typing import Any

from src.common.exceptions import StoreUnavailableError
from src.infra.store import DocumentStore, Mutator, Subscription, Transform


@dataclass
class _Watcher:
    """Активный слушатель узла."""
    subscription: Subscription
    collection: str
    key: str | None = None
    field: str | None = None
    value: Any = None

    def snapshot(self, documents: dict[str, dict]) -> Any:
        """Снапшот, который получит подписчик."""
        if self.key is not None:
            return copy.deepcopy(documents.get(self.key))

        return {
            key: copy.deepcopy(doc)
            for key, doc in documents.items()
            if self.field is None or doc.get(self.field) == self.value
        }


class MemoryDocumentStore(DocumentStore):
    """
    Хранилище в памяти.

    Атрибут available позволяет смоделировать потерю связи: при False
    любая операция поднимает StoreUnavailableError.
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict]] = {}
        self._logs: dict[str, list[dict]] = {}
        self._watchers: list[_Watcher] = []
        self._lock = asyncio.Lock()
        self.available = True

    @property
    def listener_count(self) -> int:
        return len(self._watchers)

    async def _checkpoint(self) -> None:
        # Каждая операция с хранилищем: точка переключения
        await asyncio.sleep(0)
        if not self.available:
            raise StoreUnavailableError("Хранилище недоступно")

    def _notify(self, collection: str, key: str | None) -> None:
        documents = self._data.get(collection, {})
        for watcher in list(self._watchers):
            if watcher.collection != collection:
                continue
            if watcher.key is not None and key is not None and watcher.key != key:
                continue
            watcher.subscription.push(watcher.snapshot(documents))

    def _write(self, collection: str, key: str, document: dict) -> None:
        self._data.setdefault(collection, {})[key] = copy.deepcopy(document)
        self._notify(collection, key)

    async def get(self, collection: str, key: str) -> dict | None:
        await self._checkpoint()
        return copy.deepcopy(self._data.get(collection, {}).get(key))

    async def set(self, collection: str, key: str, document: dict) -> None:
        await self._checkpoint()
        self._write(collection, key, document)

    async def update(self, collection: str, key: str, mutate: Mutator) -> tuple[dict | None, bool]:
        await self._checkpoint()
        async with self._lock:
            current = copy.deepcopy(self._data.get(collection, {}).get(key))
            updated = mutate(copy.deepcopy(current))
            if updated is None:
                return current, False
            self._write(collection, key, updated)
            return copy.deepcopy(updated), True

    async def query(self, collection: str, field: str, value: Any) -> dict[str, dict]:
        await self._checkpoint()
        return {
            key: copy.deepcopy(doc)
            for key, doc in self._data.get(collection, {}).items()
            if doc.get(field) == value
        }

    async def list(self, collection: str) -> dict[str, dict]:
        await self._checkpoint()
        return copy.deepcopy(self._data.get(collection, {}))

    async def append(self, collection: str, document: dict) -> None:
        await self._checkpoint()
        self._logs.setdefault(collection, []).append(copy.deepcopy(document))

    async def read_log(self, collection: str) -> list[dict]:
        await self._checkpoint()
        return copy.deepcopy(self._logs.get(collection, []))

    async def delete_collection(self, collection: str) -> None:
        await self._checkpoint()
        self._data.pop(collection, None)
        self._logs.pop(collection, None)
        self._notify(collection, None)

    async def _register(self, watcher: _Watcher) -> Subscription:
        self._watchers.append(watcher)

        async def release() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        watcher.subscription.on_close(release)
        # Первый снапшот: текущее состояние узла
        watcher.subscription.push(watcher.snapshot(self._data.get(watcher.collection, {})))
        return watcher.subscription

    async def subscribe_collection(
        self,
        collection: str,
        *,
        field: str | None = None,
        value: Any = None,
        transform: Transform | None = None,
    ) -> Subscription:
        await self._checkpoint()
        subscription = Subscription(collection, transform)
        return await self._register(_Watcher(subscription, collection, field=field, value=value))

    async def subscribe_document(
        self,
        collection: str,
        key: str,
        *,
        transform: Transform | None = None,
    ) -> Subscription:
        await self._checkpoint()
        subscription = Subscription(f"{collection}/{key}", transform)
        return await self._register(_Watcher(subscription, collection, key=key))

    async def health_check(self) -> bool:
        return self.available

    async def close(self) -> None:
        for watcher in list(self._watchers):
            await watcher.subscription.close()
