"""
Shared utilities for the CO2 Data Proxy.

This package aggregates common building blocks consumed by the service,
its scripts and its mocks:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient upstream call protection
- base_service: FastAPI app skeleton with CORS, health and metrics

Do not import from service_* packages into shared/.
"""
