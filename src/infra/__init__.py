# src/infra/__init__.py
"""
Инфраструктурный слой.
Хранилище документов и его реализации: Redis и память процесса.
"""

from src.infra.redis_client import RedisClient, get_redis
from src.infra.store import DocumentStore, Subscription, SubscriptionClosedError
from src.infra.memory_store import MemoryDocumentStore
from src.infra.redis_store import RedisDocumentStore
from src.infra.factory import get_store, init_store, close_store

__all__ = [
    "RedisClient",
    "get_redis",
    "DocumentStore",
    "Subscription",
    "SubscriptionClosedError",
    "MemoryDocumentStore",
    "RedisDocumentStore",
    "get_store",
    "init_store",
    "close_store",
]
