"""
Response cache for the upstream CO2 feed.

There is exactly one upstream resource, so the cache is a single entry
``{"data": <payload>, "timestamp": <epoch ms>}`` under one key. Reads and
writes never raise: a broken store degrades to "always fetch upstream".
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from shared.logging import get_logger
from ..store import KeyValueStore, fail_safe

DEFAULT_CACHE_KEY = "co2_cache"
DEFAULT_CACHE_DURATION_MS = 60 * 60 * 1000


def _epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload and the epoch-ms time it was stored."""

    data: Any
    timestamp: int

    def age_ms(self, now: int) -> int:
        return now - self.timestamp

    def is_fresh(self, now: int, duration_ms: int) -> bool:
        return self.age_ms(now) < duration_ms

    def to_json(self) -> str:
        return json.dumps({"data": self.data, "timestamp": self.timestamp})

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["CacheEntry"]:
        """Decode a stored entry; malformed values read as absent."""
        if not raw:
            return None
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(decoded, dict) or "data" not in decoded:
            return None
        timestamp = decoded.get("timestamp")
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            return None
        if decoded["data"] is None:
            return None
        return cls(data=decoded["data"], timestamp=int(timestamp))


class ResponseCache:
    """Singleton cache entry with fresh and any-age reads."""

    def __init__(
        self,
        store: KeyValueStore,
        cache_key: str = DEFAULT_CACHE_KEY,
        duration_ms: int = DEFAULT_CACHE_DURATION_MS,
        clock: Callable[[], int] = _epoch_ms,
        metrics: Optional[Any] = None,
    ):
        self.store = store
        self.cache_key = cache_key
        self.duration_ms = duration_ms
        self.logger = get_logger("co2proxy.cache")
        self.metrics = metrics
        self._clock = clock

    async def _read_entry(self) -> Optional[CacheEntry]:
        return await fail_safe(
            self._load,
            None,
            event="Cache error",
            metrics=self.metrics,
            key=self.cache_key,
        )

    async def _load(self) -> Optional[CacheEntry]:
        raw = await self.store.get(self.cache_key)
        entry = CacheEntry.from_json(raw)
        if raw and entry is None:
            self.logger.warning("Discarding malformed cache entry", key=self.cache_key)
        return entry

    async def get_fresh(self) -> Optional[Any]:
        """Return the payload only while it is younger than the cache duration."""
        entry = await self._read_entry()
        if entry is None:
            return None
        if not entry.is_fresh(self._clock(), self.duration_ms):
            self.logger.debug("Cache entry stale", key=self.cache_key, timestamp=entry.timestamp)
            return None
        return entry.data

    async def get_any(self) -> Optional[Any]:
        """Return the payload regardless of age. Used only as upstream fallback."""
        entry = await self._read_entry()
        return entry.data if entry is not None else None

    async def age_ms(self) -> Optional[int]:
        entry = await self._read_entry()
        if entry is None:
            return None
        return entry.age_ms(self._clock())

    async def set(self, payload: Any) -> None:
        """Overwrite the entry with ``payload`` stamped now. Failures are logged only."""
        entry = CacheEntry(data=payload, timestamp=self._clock())

        async def _write() -> bool:
            await self.store.set(self.cache_key, entry.to_json())
            self.logger.debug("Cached upstream payload", key=self.cache_key, timestamp=entry.timestamp)
            return True

        await fail_safe(
            _write,
            False,
            event="Cache set error",
            metrics=self.metrics,
            key=self.cache_key,
        )
