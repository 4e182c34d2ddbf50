#!/usr/bin/env python3
"""
Warm the proxy's CO2 cache entry from the upstream feed.

Useful after a Redis flush or before a traffic spike: fetches the feed once
and writes the shared cache entry the proxy reads. With ``--dry-run`` it only
reports the age of the entry currently stored.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import get_config  # noqa: E402
from shared.errors import UpstreamError  # noqa: E402
from service_co2proxy.app.adapters.upstream_client import UpstreamClient  # noqa: E402
from service_co2proxy.app.caching.response_cache import ResponseCache  # noqa: E402
from service_co2proxy.app.store import create_store  # noqa: E402


async def warm(
    *,
    store_backend: str,
    redis_url: str,
    upstream_url: str,
    cache_key: str,
    timeout: float,
    dry_run: bool,
) -> Dict[str, Any]:
    """Fetch upstream and write the cache entry, returning a summary."""
    store = create_store(store_backend, redis_url)
    cache = ResponseCache(store, cache_key=cache_key)
    summary: Dict[str, Any] = {
        "cache_key": cache_key,
        "previous_age_ms": await cache.age_ms(),
        "warmed": False,
    }

    try:
        if dry_run:
            return summary

        client = UpstreamClient(upstream_url, timeout_seconds=timeout)
        try:
            payload = await client.fetch()
        except UpstreamError as exc:
            summary["error"] = exc.message
            return summary

        await cache.set(payload)
        summary["warmed"] = await cache.age_ms() is not None
        summary["payload_bytes"] = len(payload.encode("utf-8"))
        return summary
    finally:
        await store.close()


def _parse_args() -> argparse.Namespace:
    config = get_config("co2proxy", 8000)
    parser = argparse.ArgumentParser(description="Warm the CO2 proxy cache entry.")
    parser.add_argument("--store-backend", default=config.store_backend, choices=["redis", "memory"], help="Key-value store backend")
    parser.add_argument("--redis-url", default=config.redis_url, help="Redis connection URL")
    parser.add_argument("--upstream-url", default=config.upstream_url, help="Upstream feed URL")
    parser.add_argument("--cache-key", default=config.cache_key, help="Cache entry key")
    parser.add_argument("--timeout", type=float, default=config.upstream_timeout_seconds, help="Upstream timeout in seconds")
    parser.add_argument("--dry-run", action="store_true", help="Do not fetch or write; report the current entry age")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        summary = asyncio.run(
            warm(
                store_backend=args.store_backend,
                redis_url=args.redis_url,
                upstream_url=args.upstream_url,
                cache_key=args.cache_key,
                timeout=args.timeout,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-warm] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[cache-warm] DRY RUN - no upstream fetch or cache write executed")

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0 if args.dry_run or summary["warmed"] else 2


if __name__ == "__main__":
    raise SystemExit(main())
