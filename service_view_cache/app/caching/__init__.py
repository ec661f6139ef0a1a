"""
Cache-through response caching.

Serves GET responses from Redis when a fresh entry exists, otherwise lets the
request through, captures the response on its way out and stores it with a
TTL. Clients force a refresh with ``x-no-cache: true``, which also deletes
the stored entry.
"""

from .capture import CapturingSend
from .controller import CacheDecision, CacheThroughController, ViewCacheMiddleware
from .keys import KeyResolver, original_url, parse_ttl_ms, path_key_resolver
from .store import CacheRecord, LookupResult, RedisViewStore
from .view_cache import ViewCache, ViewCacheSettings

__all__ = [
    "CacheDecision",
    "CacheRecord",
    "CacheThroughController",
    "CapturingSend",
    "KeyResolver",
    "LookupResult",
    "RedisViewStore",
    "ViewCache",
    "ViewCacheMiddleware",
    "ViewCacheSettings",
    "original_url",
    "parse_ttl_ms",
    "path_key_resolver",
]
