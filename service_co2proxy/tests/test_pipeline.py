"""
Unit tests for the request pipeline.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from service_co2proxy.app.caching.response_cache import ResponseCache
from service_co2proxy.app.domain.pipeline import Co2DataPipeline, DataSource
from service_co2proxy.app.ratelimit.sliding_window import SlidingWindowRateLimiter
from service_co2proxy.app.store import InMemoryKeyValueStore
from shared.errors import DataUnavailableError, RateLimitError, UpstreamError
from shared.test_helpers import SAMPLE_CO2_FEED, FailingKeyValueStore, FakeClock, cache_entry_json

HOUR_MS = 60 * 60 * 1000


class TestCo2DataPipeline:
    """Test cases for Co2DataPipeline."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self):
        return InMemoryKeyValueStore()

    @pytest.fixture
    def upstream(self):
        upstream = AsyncMock()
        upstream.fetch.return_value = SAMPLE_CO2_FEED
        return upstream

    def _pipeline(self, store, upstream, clock, limit=100, **kwargs):
        limiter = SlidingWindowRateLimiter(store, limit=limit, clock=clock)
        cache = ResponseCache(store, clock=clock)
        return Co2DataPipeline(limiter, cache, upstream, **kwargs)

    @pytest.mark.asyncio
    async def test_miss_fetches_and_caches(self, store, upstream, clock):
        pipeline = self._pipeline(store, upstream, clock)

        result = await pipeline.handle("127.0.0.1")

        assert result.payload == SAMPLE_CO2_FEED
        assert result.source == DataSource.UPSTREAM
        assert result.from_cache is False
        assert await pipeline.cache.get_fresh() == SAMPLE_CO2_FEED

    @pytest.mark.asyncio
    async def test_fresh_hit_skips_upstream(self, store, upstream, clock):
        pipeline = self._pipeline(store, upstream, clock)
        await pipeline.handle("127.0.0.1")

        result = await pipeline.handle("127.0.0.1")

        assert result.source == DataSource.CACHE
        assert result.from_cache is True
        upstream.fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_fallback_on_upstream_failure(self, store, upstream, clock):
        await store.set("co2_cache", cache_entry_json("stale feed", clock.now_ms - 2 * HOUR_MS))
        upstream.fetch.side_effect = UpstreamError(service="noaa_gml", message="timeout")
        pipeline = self._pipeline(store, upstream, clock)

        result = await pipeline.handle("127.0.0.1")

        assert result.payload == "stale feed"
        assert result.source == DataSource.STALE
        assert result.from_cache is True
        upstream.fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_total_failure_raises(self, store, upstream, clock):
        upstream.fetch.side_effect = UpstreamError(service="noaa_gml", message="timeout")
        pipeline = self._pipeline(store, upstream, clock)

        with pytest.raises(DataUnavailableError) as exc_info:
            await pipeline.handle("127.0.0.1")

        assert exc_info.value.message == "Error fetching CO2 data"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_rejected_request_touches_nothing_else(self, store, upstream, clock):
        pipeline = self._pipeline(store, upstream, clock, limit=1)
        await pipeline.handle("127.0.0.1")
        upstream.fetch.reset_mock()

        with pytest.raises(RateLimitError) as exc_info:
            await pipeline.handle("127.0.0.1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Too many requests"
        assert exc_info.value.retry_after_seconds == 15 * 60
        upstream.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_outage_still_serves_upstream(self, upstream, clock):
        """Test a dead store degrades to fetching upstream every time."""
        pipeline = self._pipeline(FailingKeyValueStore(), upstream, clock, limit=1)

        for _ in range(3):
            result = await pipeline.handle("127.0.0.1")
            assert result.source == DataSource.UPSTREAM

        assert upstream.fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_store_outage_and_upstream_failure(self, upstream, clock):
        upstream.fetch.side_effect = UpstreamError(service="noaa_gml", message="down")
        pipeline = self._pipeline(FailingKeyValueStore(), upstream, clock)

        with pytest.raises(DataUnavailableError):
            await pipeline.handle("127.0.0.1")

    @pytest.mark.asyncio
    async def test_concurrent_misses_fetch_twice_by_default(self, store, clock):
        calls = []

        async def slow_fetch():
            calls.append(1)
            await asyncio.sleep(0.01)
            return SAMPLE_CO2_FEED

        upstream = AsyncMock()
        upstream.fetch.side_effect = slow_fetch
        pipeline = self._pipeline(store, upstream, clock)

        results = await asyncio.gather(pipeline.handle("a"), pipeline.handle("b"))

        assert [r.payload for r in results] == [SAMPLE_CO2_FEED, SAMPLE_CO2_FEED]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_single_flight_shares_one_fetch(self, store, clock):
        calls = []

        async def slow_fetch():
            calls.append(1)
            await asyncio.sleep(0.01)
            return SAMPLE_CO2_FEED

        upstream = AsyncMock()
        upstream.fetch.side_effect = slow_fetch
        pipeline = self._pipeline(store, upstream, clock, single_flight=True)

        results = await asyncio.gather(*(pipeline.handle(f"client-{i}") for i in range(5)))

        assert all(r.payload == SAMPLE_CO2_FEED for r in results)
        assert all(r.source == DataSource.UPSTREAM for r in results)
        assert len(calls) == 1
