"""
Proxy caching package.

One shared entry for the upstream feed, read fresh on the normal path and at
any age when the upstream is down.
"""

from .response_cache import CacheEntry, ResponseCache

__all__ = ["CacheEntry", "ResponseCache"]
