"""
Key-value store abstraction shared by the rate limiter and the response cache.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shared.logging import get_logger

T = TypeVar("T")

_guard_logger = get_logger("co2proxy.store.guard")


class KeyValueStore(ABC):
    """Async string store with no atomicity guarantees.

    Any call may raise; callers go through :func:`fail_safe`.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, optionally expiring after ``ttl_seconds``."""

    async def close(self) -> None:
        return None


async def fail_safe(
    operation: Callable[[], Awaitable[T]],
    default: T,
    *,
    event: str,
    metrics: Optional[Any] = None,
    **context: Any,
) -> T:
    """Run ``operation`` once; on any failure log it and return ``default``."""
    try:
        return await operation()
    except Exception as exc:
        _guard_logger.error(event, error=str(exc), error_type=type(exc).__name__, **context)
        if metrics is not None:
            metrics.increment_counter("store_errors_total", operation=event)
        return default
