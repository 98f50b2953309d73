# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("ADMIN_TOKEN", "")
os.environ.setdefault("STORE_BACKEND", "memory")

from src.common.constants import ActorRole, PaymentMethod
from src.core.calls.models import Call
from src.core.calls.service import CallRegistry
from src.core.history.service import RideHistoryService
from src.core.negotiation.service import NegotiationEngine
from src.core.presence.service import PresenceRegistry
from src.core.ratings.service import RatingAggregator
from src.infra.memory_store import MemoryDocumentStore


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "ride_match_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "COMPONENT_MODE": "reset",
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "LOG_MAX_BYTES": 1024,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_PASSWORD": "",
        "REDIS_NAMESPACE": "ride_test",
        "REDIS_MAX_CONNECTIONS": 10,
        "STORE_BACKEND": "memory",
        "PRESENCE_LIVENESS_SECONDS": 120,
        "CALL_STALENESS_HOURS": 6,
        "DEFAULT_RATING": 5.0,
        "MIN_RATING": 1,
        "MAX_RATING": 5,
        "ALLOW_RENEGOTIATION_AFTER_AGREEMENT": False,
        "ATOMIC_CLAIMS": False,
        "DEFAULT_SEARCH_RADIUS_KM": 3.0,
        "ADMIN_API_HOST": "127.0.0.1",
        "ADMIN_API_PORT": 9000,
        "ADMIN_RESET_ENABLED": False,
        "ADMIN_TOKEN": "",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config), encoding="utf-8")
    return config_file


# =============================================================================
# ВРЕМЯ
# =============================================================================

class FakeClock:
    """Управляемые часы для тестов окон живости и устаревания."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def base_time() -> datetime:
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(base_time: datetime) -> FakeClock:
    return FakeClock(base_time)


# =============================================================================
# ХРАНИЛИЩЕ И РЕЕСТРЫ
# =============================================================================

@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    """Чистое хранилище в памяти."""
    return MemoryDocumentStore()


@pytest.fixture
def presence(memory_store: MemoryDocumentStore, clock: FakeClock) -> PresenceRegistry:
    return PresenceRegistry(memory_store, clock=clock, liveness_seconds=300)


@pytest.fixture
def calls(memory_store: MemoryDocumentStore, clock: FakeClock) -> CallRegistry:
    return CallRegistry(memory_store, clock=clock, staleness_hours=12, atomic_claims=True)


@pytest.fixture
def ratings(memory_store: MemoryDocumentStore) -> RatingAggregator:
    return RatingAggregator(memory_store, default_rating=5.0, min_rating=1, max_rating=5)


@pytest.fixture
def history(memory_store: MemoryDocumentStore, clock: FakeClock) -> RideHistoryService:
    return RideHistoryService(memory_store, clock=clock)


@pytest.fixture
def engine(
    memory_store: MemoryDocumentStore,
    calls: CallRegistry,
    history: RideHistoryService,
    ratings: RatingAggregator,
    clock: FakeClock,
) -> NegotiationEngine:
    return NegotiationEngine(
        memory_store,
        calls,
        history=history,
        ratings=ratings,
        allow_renegotiation=True,
        clock=clock,
    )


# =============================================================================
# МОКИ ИНФРАСТРУКТУРЫ
# =============================================================================

@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок Redis клиента."""
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    redis.hget = AsyncMock(return_value=None)
    redis.hset = AsyncMock(return_value=1)
    redis.hgetall = AsyncMock(return_value={})
    redis.rpush = AsyncMock(return_value=1)
    redis.lrange = AsyncMock(return_value=[])
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=0)
    redis.publish = AsyncMock(return_value=1)
    redis.pubsub = MagicMock()
    return redis


# =============================================================================
# ДАННЫЕ
# =============================================================================

@pytest.fixture
def sample_call_data(base_time: datetime) -> dict[str, Any]:
    """Открытый вызов клиента."""
    return {
        "call_id": "call-1",
        "initiator_id": "customer-1",
        "initiator_role": ActorRole.CUSTOMER,
        "pickup_lat": 41.3111,
        "pickup_lon": 69.2797,
        "dest_lat": 41.2995,
        "dest_lon": 69.2401,
        "passenger_count": 1,
        "offer_price": 50.0,
        "created_at": base_time,
    }


@pytest.fixture
def sample_call(sample_call_data: dict[str, Any]) -> Call:
    return Call(**sample_call_data)


@pytest.fixture
def sample_presence_data() -> dict[str, Any]:
    """Позиция водителя в Ташкенте."""
    return {
        "actor_id": "driver-1",
        "latitude": 41.3111,
        "longitude": 69.2797,
        "role": ActorRole.DRIVER,
        "available_seats": 3,
        "payment_methods": [PaymentMethod.CASH, PaymentMethod.CLICK],
        "rating": 4.8,
    }
