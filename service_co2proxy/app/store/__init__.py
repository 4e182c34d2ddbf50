"""
Key-value store backends.

Both the rate limiter and the response cache keep all of their state here
rather than in process memory, so several proxy instances share one view.
"""

from .base import KeyValueStore, fail_safe
from .memory import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore


def create_store(backend: str, redis_url: str) -> KeyValueStore:
    """Build the store selected by configuration."""
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore(redis_url)
    raise ValueError(f"Unknown store backend: {backend}")


__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "create_store",
    "fail_safe",
]
