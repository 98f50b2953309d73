# src/infra/store.py
"""
Адаптер общего хранилища документов.

Хранилище адресуется путями вида {collection}/{key}, поддерживает точечное чтение
и запись, запрос по одному полю на равенство и push-подписки на узел, которые
при каждом изменении отдают снапшот узла целиком. Транзакций между документами нет,
каждая запись: полная перезапись документа.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.common.exceptions import RideMatchError
from src.common.logger import log_warning

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

# Маркер отфильтрованного снапшота: подписчику ничего не отдаётся
SKIP: Any = object()
_CLOSED: Any = object()

Transform = Callable[[Any], Awaitable[Any]]
Mutator = Callable[[Optional[dict]], Optional[dict]]


class SubscriptionClosedError(RideMatchError):
    """Чтение из закрытой подписки."""
    pass


class Subscription(Generic[T]):
    """
    Дескриптор подписки на узел хранилища.

    Асинхронный итератор снапшотов. Преобразование (фильтрация, валидация)
    выполняется в момент чтения, а не в момент доставки. close() идемпотентен:
    после него подписчик не получает ни одного снапшота, а слушатель освобождается.

    Пример:
        async with await registry.subscribe(ActorRole.DRIVER) as drivers:
            async for snapshot in drivers:
                ...
    """

    def __init__(self, name: str, transform: Transform | None = None) -> None:
        self.name = name
        self._transform = transform
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._close_callbacks: list[Callable[[], Awaitable[None]]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, snapshot: Any) -> None:
        """
        Доставляет снапшот от хранилища (без ожидания).

        Снапшот содержит узел целиком, поэтому непрочитанный предыдущий
        вытесняется: в очереди ждёт не больше одного снапшота.
        """
        if self._closed:
            return
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    def on_close(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Регистрирует освобождение ресурса слушателя."""
        self._close_callbacks.append(callback)

    async def close(self) -> None:
        """Останавливает доставку и освобождает слушателя."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            await callback()

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        while True:
            if self._closed:
                raise StopAsyncIteration

            snapshot = await self._queue.get()
            if snapshot is _CLOSED or self._closed:
                raise StopAsyncIteration

            if self._transform is None:
                return snapshot

            item = await self._transform(snapshot)
            if item is SKIP:
                continue
            return item

    async def get(self, timeout: float | None = None) -> T:
        """
        Ждёт следующий снапшот.

        Raises:
            SubscriptionClosedError: подписка закрыта
            asyncio.TimeoutError: снапшот не пришёл за timeout секунд
        """
        try:
            return await asyncio.wait_for(self.__anext__(), timeout)
        except StopAsyncIteration:
            raise SubscriptionClosedError(f"Подписка {self.name} закрыта") from None

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class DocumentStore(ABC):
    """Абстрактное хранилище документов."""

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict | None:
        """Точечное чтение документа."""

    @abstractmethod
    async def set(self, collection: str, key: str, document: dict) -> None:
        """Полная перезапись документа (идемпотентна)."""

    @abstractmethod
    async def update(self, collection: str, key: str, mutate: Mutator) -> tuple[dict | None, bool]:
        """
        Атомарная условная запись.

        mutate получает текущий документ (или None) и возвращает новый документ
        либо None, если запись не нужна.

        Returns:
            (итоговый документ, была ли выполнена запись)
        """

    @abstractmethod
    async def query(self, collection: str, field: str, value: Any) -> dict[str, dict]:
        """Документы коллекции, у которых field == value."""

    @abstractmethod
    async def list(self, collection: str) -> dict[str, dict]:
        """Все документы коллекции."""

    @abstractmethod
    async def append(self, collection: str, document: dict) -> None:
        """Добавляет документ в append-only коллекцию."""

    @abstractmethod
    async def read_log(self, collection: str) -> list[dict]:
        """Документы append-only коллекции в порядке добавления."""

    @abstractmethod
    async def delete_collection(self, collection: str) -> None:
        """Удаляет все документы узла."""

    @abstractmethod
    async def subscribe_collection(
        self,
        collection: str,
        *,
        field: str | None = None,
        value: Any = None,
        transform: Transform | None = None,
    ) -> Subscription:
        """Подписка на узел целиком (с необязательным предикатом field == value)."""

    @abstractmethod
    async def subscribe_document(
        self,
        collection: str,
        key: str,
        *,
        transform: Transform | None = None,
    ) -> Subscription:
        """Подписка на один документ."""

    async def health_check(self) -> bool:
        """Хранилище доступно."""
        return True

    async def close(self) -> None:
        """Освобождает ресурсы хранилища."""
        return None


async def parse_document(model: Type[M], data: dict | None, *, source: str) -> M | None:
    """
    Валидирует документ хранилища в типизированную модель.
    Невалидный документ логируется и считается отсутствующим.
    """
    if data is None:
        return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        await log_warning(
            f"Невалидный документ {source}: {e.error_count()} ошибок",
            extra={"model": model.__name__, "errors": e.errors(include_url=False)},
        )
        return None


def dump_document(model: BaseModel) -> dict:
    """Сериализует модель в JSON-совместимый документ."""
    return model.model_dump(mode="json")
