"""
Unit tests for key-value store backends and the fail-safe guard.
"""

import pytest
import redis.asyncio as redis
from unittest.mock import AsyncMock, MagicMock, patch

from service_co2proxy.app.store import (
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    create_store,
    fail_safe,
)
from shared.errors import StoreError


class _Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestInMemoryKeyValueStore:
    """Test cases for InMemoryKeyValueStore."""

    @pytest.mark.asyncio
    async def test_get_set(self):
        store = InMemoryKeyValueStore()
        assert await store.get("missing") is None

        await store.set("key", "value")
        assert await store.get("key") == "value"

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        """Test keys written with a TTL disappear once it elapses."""
        clock = _Clock()
        store = InMemoryKeyValueStore(clock=clock)
        await store.set("key", "value", ttl_seconds=10)

        clock.now += 9.9
        assert await store.get("key") == "value"

        clock.now += 0.1
        assert await store.get("key") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_expired_keys_evicted_without_reread(self):
        """Test abandoned keys are dropped once any later write happens."""
        clock = _Clock()
        store = InMemoryKeyValueStore(clock=clock)
        for i in range(500):
            await store.set(f"ratelimit_10.0.{i // 256}.{i % 256}", "[1]", ttl_seconds=1)
        assert len(store) == 500

        clock.now += 10
        await store.set("ratelimit_192.0.2.1", "[2]", ttl_seconds=1)

        assert len(store) == 1
        assert await store.get("ratelimit_192.0.2.1") == "[2]"

    @pytest.mark.asyncio
    async def test_rewrite_extends_expiry(self):
        clock = _Clock()
        store = InMemoryKeyValueStore(clock=clock)
        await store.set("key", "a", ttl_seconds=5)

        clock.now += 4
        await store.set("key", "b", ttl_seconds=5)
        clock.now += 4

        assert await store.get("key") == "b"
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_overwrite_without_ttl_clears_expiry(self):
        clock = _Clock()
        store = InMemoryKeyValueStore(clock=clock)
        await store.set("key", "a", ttl_seconds=1)
        await store.set("key", "b")

        clock.now += 100
        assert await store.get("key") == "b"


class TestRedisKeyValueStore:
    """Test cases for RedisKeyValueStore."""

    @pytest.fixture
    def store(self):
        return RedisKeyValueStore("redis://localhost:6379/0")

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self, store):
        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis
            mock_redis.get.return_value = b"[1, 2]"

            assert await store.get("ratelimit_1.1.1.1") == "[1, 2]"
            mock_redis.get.assert_awaited_once_with("ratelimit_1.1.1.1")

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, store):
        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await store.set("ratelimit_1.1.1.1", "[1]", ttl_seconds=900)
            mock_redis.set.assert_awaited_once_with("ratelimit_1.1.1.1", "[1]", ex=900)

    @pytest.mark.asyncio
    async def test_set_without_ttl(self, store):
        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await store.set("co2_cache", "{}")
            mock_redis.set.assert_awaited_once_with("co2_cache", "{}")

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_errors(self, store):
        """Test Redis failures surface as StoreError."""
        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis
            mock_redis.get.side_effect = redis.ConnectionError("Redis connection failed")

            with pytest.raises(StoreError) as exc_info:
                await store.get("co2_cache")

            assert exc_info.value.details == {"operation": "get", "key": "co2_cache"}

    @pytest.mark.asyncio
    async def test_close_releases_client(self, store):
        client = AsyncMock()
        store._redis = client

        await store.close()

        client.aclose.assert_awaited_once()
        assert store._redis is None


class TestCreateStore:
    """Test cases for create_store."""

    def test_memory_backend(self):
        assert isinstance(create_store("memory", "redis://unused"), InMemoryKeyValueStore)

    def test_redis_backend(self):
        store = create_store("redis", "redis://cache:6379/1")
        assert isinstance(store, RedisKeyValueStore)
        assert store.redis_url == "redis://cache:6379/1"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store("memcached", "redis://unused")


class TestFailSafe:
    """Test cases for the fail-safe guard."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def op():
            return "value"

        assert await fail_safe(op, "default", event="op") == "value"

    @pytest.mark.asyncio
    async def test_returns_default_and_counts_failure(self):
        metrics = MagicMock()

        async def op():
            raise ConnectionError("down")

        result = await fail_safe(op, "default", event="Cache error", metrics=metrics, key="co2_cache")

        assert result == "default"
        metrics.increment_counter.assert_called_once_with("store_errors_total", operation="Cache error")
