# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.infra.redis_client import RedisClient


class TestRedisClient:
    """Тесты для RedisClient."""

    @pytest.fixture
    def redis_client(self) -> RedisClient:
        """Создаёт экземпляр RedisClient для тестов."""
        # Сбрасываем синглтон для каждого теста
        RedisClient._instance = None
        RedisClient._client = None
        client = RedisClient()
        return client

    def test_singleton(self) -> None:
        """Проверяет паттерн Singleton."""
        RedisClient._instance = None

        client1 = RedisClient()
        client2 = RedisClient()

        assert client1 is client2

    def test_client_not_initialized(self, redis_client: RedisClient) -> None:
        """Проверяет ошибку при обращении к неинициализированному клиенту."""
        with pytest.raises(RuntimeError, match="Redis клиент не инициализирован"):
            _ = redis_client.client

    def test_make_key(self, redis_client: RedisClient) -> None:
        """Проверяет формирование ключа с namespace."""
        assert redis_client.make_key("calls") == "ride:calls"

    def test_channel(self, redis_client: RedisClient) -> None:
        """Канал изменений узла."""
        assert redis_client.channel("calls") == "ride:changes:calls"

    @pytest.mark.asyncio
    async def test_connect(self, redis_client: RedisClient) -> None:
        """Проверяет подключение к Redis."""
        mock_redis = AsyncMock()
        mock_redis.ping = AsyncMock(return_value=True)

        with patch("redis.asyncio.from_url", return_value=mock_redis):
            await redis_client.connect(
                url="redis://localhost:6379/0",
                max_connections=10,
                namespace="custom",
            )

        assert redis_client._client is not None
        assert redis_client.make_key("calls") == "custom:calls"
        mock_redis.ping.assert_called_once()

    @pytest.mark.asyncio
    async def test_connect_already_connected(self, redis_client: RedisClient) -> None:
        """Проверяет, что повторное подключение пропускается."""
        redis_client._client = AsyncMock()

        with patch("redis.asyncio.from_url") as mock_from_url:
            await redis_client.connect(url="redis://localhost:6379/0")

        mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnect(self, redis_client: RedisClient) -> None:
        """Проверяет отключение от Redis."""
        mock_redis = AsyncMock()
        redis_client._client = mock_redis

        await redis_client.disconnect()

        mock_redis.aclose.assert_called_once()
        assert redis_client._client is None

    @pytest.mark.asyncio
    async def test_hget_json(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Проверяет чтение JSON-документа из хеша."""
        mock_redis.hget.return_value = '{"status": "Open"}'
        redis_client._client = mock_redis

        result = await redis_client.hget_json("calls", "c1")

        assert result == {"status": "Open"}
        mock_redis.hget.assert_called_once_with("ride:calls", "c1")

    @pytest.mark.asyncio
    async def test_hget_json_corrupted(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Повреждённый документ считается отсутствующим."""
        mock_redis.hget.return_value = "{not json"
        redis_client._client = mock_redis

        with patch("src.infra.redis_client.log_error", new_callable=AsyncMock) as log:
            assert await redis_client.hget_json("calls", "c1") is None
        log.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hset_json(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Проверяет запись JSON-документа."""
        redis_client._client = mock_redis

        await redis_client.hset_json("calls", "c1", {"status": "Open"})

        mock_redis.hset.assert_called_once_with("ride:calls", "c1", json.dumps({"status": "Open"}))

    @pytest.mark.asyncio
    async def test_hgetall_json_skips_corrupted(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Повреждённые документы пропускаются при чтении узла."""
        mock_redis.hgetall.return_value = {"c1": '{"status": "Open"}', "c2": "broken"}
        redis_client._client = mock_redis

        with patch("src.infra.redis_client.log_error", new_callable=AsyncMock):
            result = await redis_client.hgetall_json("calls")

        assert result == {"c1": {"status": "Open"}}

    @pytest.mark.asyncio
    async def test_list_operations(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Проверяет append-only списки."""
        mock_redis.lrange.return_value = ['{"n": 1}', '{"n": 2}']
        redis_client._client = mock_redis

        await redis_client.rpush_json("ride_history", {"n": 3})
        result = await redis_client.lrange_json("ride_history")

        mock_redis.rpush.assert_called_once_with("ride:ride_history", json.dumps({"n": 3}))
        assert result == [{"n": 1}, {"n": 2}]

    @pytest.mark.asyncio
    async def test_publish(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Уведомление уходит в канал изменений узла."""
        redis_client._client = mock_redis

        await redis_client.publish("calls", "c1")

        mock_redis.publish.assert_called_once_with("ride:changes:calls", "c1")

    def test_pipeline(self, redis_client: RedisClient) -> None:
        """Пайплайн создаётся в транзакционном режиме."""
        mock_redis = MagicMock()
        redis_client._client = mock_redis

        redis_client.pipeline()

        mock_redis.pipeline.assert_called_once_with(transaction=True)

    @pytest.mark.asyncio
    async def test_health_check_ok(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Проверяет успешный health check."""
        redis_client._client = mock_redis

        assert await redis_client.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_failure(self, redis_client: RedisClient, mock_redis: AsyncMock) -> None:
        """Ошибка ping даёт False."""
        mock_redis.ping.side_effect = ConnectionError("down")
        redis_client._client = mock_redis

        with patch("src.infra.redis_client.log_error", new_callable=AsyncMock):
            assert await redis_client.health_check() is False
