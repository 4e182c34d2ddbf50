"""
Upstream feed client for the CO2 proxy.
"""

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import UpstreamError
from shared.logging import get_logger


class UpstreamClient:
    """Fetches the raw daily CO2 text file with a hard timeout.

    A timeout, transport error, non-2xx status or open circuit all surface as
    :class:`UpstreamError`. No retries happen here.
    """

    service_name = "noaa_gml"

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        user_agent: str = "CO2 Data Proxy Service",
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[Any] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.logger = get_logger("co2proxy.upstream_client")
        self.metrics = metrics
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name=self.service_name,
        )
        self._transport = transport

    async def _request(self) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        ) as client:
            # Per-phase httpx timeouts do not bound a slowly trickling body.
            response = await asyncio.wait_for(client.get(self.url), self.timeout_seconds)

        if response.is_success:
            self.logger.debug("Upstream payload retrieved", url=self.url, size=len(response.content))
            return response.text

        self.logger.error(
            "Upstream request failed",
            url=self.url,
            status_code=response.status_code,
        )
        raise UpstreamError(
            service=self.service_name,
            message=f"Unexpected status {response.status_code}",
            details={"status_code": response.status_code},
        )

    async def fetch(self) -> str:
        """Fetch the opaque payload once."""
        start = time.time()
        try:
            payload = await self.circuit_breaker.call(self._request)
        except UpstreamError:
            self._record("error", start)
            raise
        except CircuitBreakerOpenException as exc:
            self._record("circuit_open", start)
            self.logger.warning("Upstream circuit open, skipping fetch", url=self.url)
            raise UpstreamError(service=self.service_name, message="circuit open") from exc
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            self._record("timeout", start)
            self.logger.error("Upstream request timed out", url=self.url, timeout=self.timeout_seconds)
            raise UpstreamError(service=self.service_name, message="timeout") from exc
        except httpx.HTTPError as exc:
            self._record("error", start)
            self.logger.error("Upstream transport error", url=self.url, error=str(exc))
            raise UpstreamError(service=self.service_name, message=str(exc)) from exc

        self._record("success", start)
        return payload

    def _record(self, outcome: str, start: float) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_counter("upstream_fetch_total", outcome=outcome)
        self.metrics.observe_histogram("upstream_fetch_duration_seconds", time.time() - start)
