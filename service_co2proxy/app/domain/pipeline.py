"""
Request-level policy: rate check, fresh cache, upstream fetch, stale fallback.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from shared.errors import DataUnavailableError, RateLimitError, UpstreamError
from shared.logging import get_logger
from ..adapters.upstream_client import UpstreamClient
from ..caching.response_cache import ResponseCache
from ..ratelimit.sliding_window import RateLimitDecision, SlidingWindowRateLimiter


class DataSource(str, Enum):
    """Where a served payload came from."""
    UPSTREAM = "upstream"
    CACHE = "cache"
    STALE = "stale"


@dataclass(frozen=True)
class ProxyResult:
    """A successfully served payload."""

    payload: Any
    source: DataSource
    rate_limit: RateLimitDecision

    @property
    def from_cache(self) -> bool:
        return self.source in (DataSource.CACHE, DataSource.STALE)


class Co2DataPipeline:
    """Runs one request through limiter, cache and upstream.

    Raises :class:`RateLimitError` on rejection and
    :class:`DataUnavailableError` when the upstream fails with nothing cached.
    The upstream is contacted at most once per request.
    """

    def __init__(
        self,
        rate_limiter: SlidingWindowRateLimiter,
        cache: ResponseCache,
        upstream: UpstreamClient,
        metrics: Optional[Any] = None,
        single_flight: bool = False,
    ):
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.upstream = upstream
        self.metrics = metrics
        self.single_flight = single_flight
        self.logger = get_logger("co2proxy.pipeline")
        self._inflight: Optional[asyncio.Future] = None

    async def handle(self, identity: Optional[str]) -> ProxyResult:
        decision = await self.rate_limiter.check(identity)
        if not decision.allowed:
            raise RateLimitError(
                details={"identity": identity, "count": decision.count, "limit": decision.limit},
                retry_after_seconds=decision.retry_after_seconds,
            )

        payload = await self.cache.get_fresh()
        if payload is not None:
            self._count("cache_hits_total", cache_type="fresh")
            return ProxyResult(payload=payload, source=DataSource.CACHE, rate_limit=decision)

        self._count("cache_misses_total", cache_type="fresh")

        try:
            payload = await self._fetch()
        except UpstreamError as exc:
            self.logger.warning("Upstream fetch failed, trying stale cache", error=exc.message)
            stale = await self.cache.get_any()
            if stale is not None:
                self._count("cache_hits_total", cache_type="stale")
                return ProxyResult(payload=stale, source=DataSource.STALE, rate_limit=decision)

            self._count("cache_misses_total", cache_type="stale")
            raise DataUnavailableError(details={"upstream_error": exc.message}) from exc

        await self.cache.set(payload)
        return ProxyResult(payload=payload, source=DataSource.UPSTREAM, rate_limit=decision)

    async def _fetch(self) -> Any:
        if not self.single_flight:
            return await self.upstream.fetch()

        # Concurrent misses in this process share one upstream call.
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self.upstream.fetch())
        return await asyncio.shield(self._inflight)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)
