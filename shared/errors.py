"""
Shared error handling for the CO2 Data Proxy.

Every failure the proxy can observe is mapped to one of these types. Only the
``message`` of an exception ever reaches a client; ``details`` are for logs.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str


class Co2ProxyException(Exception):
    """Base exception for the proxy."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.message)


class StoreError(Co2ProxyException):
    """Key-value store failures. Never surfaced to clients."""

    def __init__(self, operation: str, key: str, message: str = "Store operation failed",
                 details: Optional[Dict[str, Any]] = None):
        merged = {"operation": operation, "key": key}
        merged.update(details or {})
        super().__init__("STORE_ERROR", message, merged)


class UpstreamError(Co2ProxyException):
    """Upstream feed unreachable, timed out or answered with an error status."""

    def __init__(self, service: str, message: str = "Upstream error", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", f"{service}: {message}", details, status_code=502)


class DataUnavailableError(Co2ProxyException):
    """Upstream failed and no cached copy exists in any form."""

    def __init__(self, message: str = "Error fetching CO2 data", details: Optional[Dict[str, Any]] = None):
        super().__init__("DATA_UNAVAILABLE", message, details, status_code=500)


class RateLimitError(Co2ProxyException):
    """Rate limiting errors."""

    def __init__(self, message: str = "Too many requests", details: Optional[Dict[str, Any]] = None,
                 retry_after_seconds: Optional[int] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details, status_code=429)
        self.retry_after_seconds = retry_after_seconds
