"""
Sliding window rate limiter for the CO2 proxy.

Each client identity owns a JSON array of request timestamps (epoch ms) in the
key-value store. On every request the array is pruned to the trailing window,
counted, and only admitted requests are appended. The read-modify-write is not
atomic: two racing requests can both be admitted at the boundary.
"""

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from shared.logging import get_logger
from ..store import KeyValueStore, fail_safe

DEFAULT_LIMIT = 100
DEFAULT_WINDOW_MS = 15 * 60 * 1000
UNKNOWN_IDENTITY = "unknown"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single limiter check."""

    allowed: bool
    count: int
    limit: int
    reset_in_ms: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.reset_in_ms / 1000))


class SlidingWindowRateLimiter:
    """Per-identity sliding window limiter that fails open."""

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_LIMIT,
        window_ms: int = DEFAULT_WINDOW_MS,
        key_prefix: str = "ratelimit_",
        clock: Callable[[], int] = _epoch_ms,
        metrics: Optional[Any] = None,
    ):
        self.store = store
        self.limit = limit
        self.window_ms = window_ms
        self.key_prefix = key_prefix
        self.logger = get_logger("co2proxy.rate_limiter")
        self.metrics = metrics
        self._clock = clock

    def _make_key(self, identity: Optional[str]) -> str:
        """Generate rate limit key."""
        return f"{self.key_prefix}{identity or UNKNOWN_IDENTITY}"

    @property
    def _ttl_seconds(self) -> int:
        return max(1, math.ceil(self.window_ms / 1000))

    @staticmethod
    def _parse_window(raw: Optional[str]) -> List[int]:
        """Decode a stored window; anything malformed counts as empty."""
        if not raw:
            return []
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError):
            return []
        if not isinstance(decoded, list):
            return []
        return [
            int(item) for item in decoded
            if isinstance(item, (int, float)) and not isinstance(item, bool) and math.isfinite(item)
        ]

    def _prune(self, window: List[int], now: int) -> List[int]:
        cutoff = now - self.window_ms
        return [ts for ts in window if ts > cutoff]

    def _reset_in_ms(self, window: List[int], now: int) -> int:
        if not window:
            return 0
        return max(0, window[0] + self.window_ms - now)

    def _fail_open_decision(self) -> RateLimitDecision:
        return RateLimitDecision(allowed=True, count=0, limit=self.limit, reset_in_ms=0)

    async def check(self, identity: Optional[str]) -> RateLimitDecision:
        """Admit or reject one request and record it when admitted."""
        key = self._make_key(identity)
        return await fail_safe(
            lambda: self._check(key),
            self._fail_open_decision(),
            event="Rate limit error",
            metrics=self.metrics,
            key=key,
        )

    async def _check(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window = self._prune(self._parse_window(await self.store.get(key)), now)

        if len(window) >= self.limit:
            # Rejected attempts are not recorded.
            self.logger.warning("Rate limit exceeded", key=key, current_count=len(window), limit=self.limit)
            if self.metrics is not None:
                self.metrics.increment_counter("rate_limit_rejections_total")
            return RateLimitDecision(
                allowed=False,
                count=len(window),
                limit=self.limit,
                reset_in_ms=self._reset_in_ms(window, now),
            )

        window.append(now)
        await self.store.set(key, json.dumps(window), ttl_seconds=self._ttl_seconds)
        return RateLimitDecision(
            allowed=True,
            count=len(window),
            limit=self.limit,
            reset_in_ms=self._reset_in_ms(window, now),
        )

    async def admit(self, identity: Optional[str]) -> bool:
        """Return True if the request may proceed. Never raises."""
        decision = await self.check(identity)
        return decision.allowed

