"""
Process-local key-value store for single-instance runs and tests.
"""

import heapq
import time
from typing import Callable, Dict, List, Optional, Tuple

from .base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store that honours per-key TTLs.

    Expired keys are evicted on every access, not only when the same key is
    read again, so windows of clients that never return do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._expiries: List[Tuple[float, str]] = []

    def _evict_expired(self) -> None:
        now = self._clock()
        while self._expiries and self._expiries[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiries)
            item = self._data.get(key)
            # Skip heap entries superseded by a later write.
            if item is not None and item[1] == expires_at:
                del self._data[key]

    async def get(self, key: str) -> Optional[str]:
        self._evict_expired()
        item = self._data.get(key)
        return item[0] if item is not None else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self._evict_expired()
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (value, expires_at)
        if expires_at is not None:
            heapq.heappush(self._expiries, (expires_at, key))

    def __len__(self) -> int:
        return len(self._data)
