"""
Base service class for the CO2 Data Proxy.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from typing import Dict, Optional
import time
import os

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import get_metrics_collector
from shared.errors import Co2ProxyException, ErrorResponse, RateLimitError


# Browser clients on any origin may read the feed.
CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
}


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            await self.shutdown()

        return FastAPI(
            lifespan=lifespan,
            title=f"{self.service_name.title()} Service",
            description="Caching, rate-limited proxy for the Mauna Loa daily CO2 feed",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )

    async def shutdown(self):
        """Release resources held by the service."""
        self.logger.info("Service shutting down", service=self.service_name)

    def _setup_middleware(self):
        """Set up middleware."""

        @self.app.middleware("http")
        async def add_cors_headers(request: Request, call_next):
            # Preflight never reaches a route.
            if request.method == "OPTIONS":
                return Response(status_code=204, headers=CORS_HEADERS)

            response = await call_next(request)
            for name, value in CORS_HEADERS.items():
                response.headers[name] = value
            return response

        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()
            request_id = set_request_id(request.headers.get("X-Request-ID"))

            try:
                response = await call_next(request)
            finally:
                clear_context()

            duration = time.time() - start_time

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )

            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
                request_id=request_id
            )

            response.headers["X-Request-ID"] = request_id
            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health", response_class=PlainTextResponse)
        async def health_check():
            """Liveness probe; touches neither the limiter nor the cache."""
            self.metrics.record_health_check("ok")
            return PlainTextResponse("OK")

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            from prometheus_client import CONTENT_TYPE_LATEST
            return Response(
                content=self.metrics.render(),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(Co2ProxyException)
        async def proxy_exception_handler(request: Request, exc: Co2ProxyException):
            """Render proxy errors with their fixed public message."""
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log(
                "Proxy error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            self.metrics.record_error(exc.code)

            headers = {}
            if isinstance(exc, RateLimitError) and exc.retry_after_seconds is not None:
                headers["Retry-After"] = str(exc.retry_after_seconds)

            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump(),
                headers=headers
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(error="Internal server error").model_dump(),
                headers=CORS_HEADERS
            )

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=int(os.getenv("PORT", self.config.port)),
            log_level=self.config.log_level.lower()
        )
