#!/usr/bin/env python3
"""
Inspect or invalidate cached views from a developer workstation or CI job.

Examples::

    python scripts/view_cache_admin.py inspect "/views/reports/daily"
    python scripts/view_cache_admin.py invalidate "/views/reports/daily" "/views/empty"
"""

import argparse
import asyncio
import json
import os
from typing import Dict, List, Optional

from service_view_cache.app.caching import ViewCache
from shared.errors import ViewCacheException
from shared.logging import configure_logging


async def inspect(cache: ViewCache, key: str) -> Dict[str, object]:
    """Describe the entry stored under ``key``."""
    result = await cache.store.lookup(key)
    if not result.hit:
        return {"key": key, "cached": False}

    record = result.record
    return {
        "key": key,
        "cached": True,
        "status_code": record.status_code,
        "content_type": record.content_type,
        "size": len(record.content),
        "saved_at": record.saved_at.isoformat(),
        "remaining_ttl_ms": result.remaining_ttl_ms,
    }


async def invalidate(cache: ViewCache, keys: List[str]) -> Dict[str, object]:
    """Delete every key, reporting which ones existed."""
    results = {}
    for key in keys:
        results[key] = await cache.invalidate(key)
    return {"invalidated": results}


async def run(args: argparse.Namespace) -> Dict[str, object]:
    cache = ViewCache(args.redis_url, debug=args.debug)
    try:
        if args.command == "inspect":
            return await inspect(cache, args.key)
        return await invalidate(cache, args.keys)
    finally:
        await cache.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect or invalidate cached views.")
    parser.add_argument(
        "--redis-url",
        default=os.getenv("VIEW_CACHE_REDIS_URL", "redis://localhost:6379/0"),
        help="Redis connection string (default: %(default)s)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose cache logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Show the stored entry for a cache key")
    inspect_parser.add_argument("key")

    invalidate_parser = subparsers.add_parser("invalidate", help="Delete stored entries")
    invalidate_parser.add_argument("keys", nargs="+")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging("view_cache_admin", "debug" if args.debug else "warning")
    try:
        summary = asyncio.run(run(args))
    except ViewCacheException as exc:
        print(json.dumps(exc.to_response().model_dump(), indent=2))
        return 1

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
