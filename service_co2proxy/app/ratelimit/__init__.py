"""
Rate limiting package for the CO2 proxy.

Holds the store-backed sliding window limiter and the helper that decides
which client identity a request is counted against.
"""

from .identity import get_client_id
from .sliding_window import RateLimitDecision, SlidingWindowRateLimiter

__all__ = ["RateLimitDecision", "SlidingWindowRateLimiter", "get_client_id"]
