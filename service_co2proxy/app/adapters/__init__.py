"""
Adapters package for the CO2 proxy.

Contains the HTTP client wrapper for the upstream feed. It encapsulates the
URL, user agent, timeout and circuit breaker, and maps every failure to a
shared error type.
"""

from .upstream_client import UpstreamClient

__all__ = ["UpstreamClient"]
