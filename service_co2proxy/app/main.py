"""
CO2 Data Proxy service.
"""

import json
from typing import Callable, Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.circuit_breaker import CircuitBreaker
from shared.config import ServiceConfig
from shared.logging import set_client_context
from .adapters.upstream_client import UpstreamClient
from .caching.response_cache import ResponseCache
from .domain.pipeline import Co2DataPipeline, ProxyResult
from .ratelimit.identity import get_client_id
from .ratelimit.sliding_window import SlidingWindowRateLimiter
from .store import KeyValueStore, create_store

SERVICE_NAME = "co2proxy"
DEFAULT_PORT = 8000


class Co2ProxyService(BaseService):
    """Caching, rate-limited proxy in front of the daily CO2 feed."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        upstream: Optional[UpstreamClient] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, config)

        if store is None:
            store = create_store(self.config.store_backend, self.config.redis_url)
        self.store = store
        self.upstream = upstream if upstream is not None else UpstreamClient(
            self.config.upstream_url,
            timeout_seconds=self.config.upstream_timeout_seconds,
            user_agent=self.config.upstream_user_agent,
            circuit_breaker=CircuitBreaker(
                failure_threshold=self.config.circuit_breaker_failure_threshold,
                recovery_timeout=self.config.circuit_breaker_recovery_timeout,
                name="noaa_gml",
            ),
            metrics=self.metrics,
        )
        if self.upstream.metrics is None:
            self.upstream.metrics = self.metrics

        clock_kwargs = {"clock": clock} if clock is not None else {}
        self.rate_limiter = SlidingWindowRateLimiter(
            self.store,
            limit=self.config.rate_limit_requests,
            window_ms=self.config.rate_limit_window_seconds * 1000,
            key_prefix=self.config.rate_limit_key_prefix,
            metrics=self.metrics,
            **clock_kwargs,
        )
        self.cache = ResponseCache(
            self.store,
            cache_key=self.config.cache_key,
            duration_ms=self.config.cache_duration_seconds * 1000,
            metrics=self.metrics,
            **clock_kwargs,
        )
        self.pipeline = Co2DataPipeline(
            self.rate_limiter,
            self.cache,
            self.upstream,
            metrics=self.metrics,
            single_flight=self.config.single_flight_enabled,
        )

        self._setup_proxy_routes()

        self.app.state.co2proxy_service = self

    async def shutdown(self):
        await super().shutdown()
        await self.store.close()

    def _setup_proxy_routes(self):
        """Set up the proxied feed route."""

        @self.app.get("/")
        async def get_co2_data(request: Request):
            """Serve the feed through the rate limit, cache and upstream pipeline."""
            client_id = get_client_id(request)
            set_client_context(client_id)
            result = await self.pipeline.handle(client_id)
            return self._build_response(result)

    def _build_response(self, result: ProxyResult) -> Response:
        # The upstream text is JSON-encoded as a string, never reparsed.
        headers = {
            "X-RateLimit-Limit": str(result.rate_limit.limit),
            "X-RateLimit-Remaining": str(result.rate_limit.remaining),
        }
        if result.from_cache:
            headers["X-Data-Source"] = "cache"

        return Response(
            content=json.dumps(result.payload),
            status_code=200,
            media_type="application/json",
            headers=headers,
        )


def create_app():
    """Create FastAPI application."""
    service = Co2ProxyService()
    return service.app


if __name__ == "__main__":
    service = Co2ProxyService()
    service.run()
