"""
Redis-backed key-value store.
"""

from typing import Optional

import redis.asyncio as redis

from shared.errors import StoreError
from shared.logging import get_logger
from .base import KeyValueStore


class RedisKeyValueStore(KeyValueStore):
    """Key-value store over a lazily created ``redis.asyncio`` client."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("co2proxy.store.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        try:
            redis_client = await self._get_redis()
            value = await redis_client.get(key)
        except redis.RedisError as exc:
            raise StoreError("get", key, str(exc)) from exc

        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            redis_client = await self._get_redis()
            if ttl_seconds:
                await redis_client.set(key, value, ex=ttl_seconds)
            else:
                await redis_client.set(key, value)
        except redis.RedisError as exc:
            raise StoreError("set", key, str(exc)) from exc

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis connection closed")
