"""
Cache-through controller and its ASGI middleware.

One evaluation per request, strictly sequential within the request::

    gate -> resolve key -> lookup -> HIT: replay stored response
                                  -> MISS: capture downstream response -> commit
    gate (x-no-cache) -> resolve key -> invalidate -> downstream, uncached

Nothing is coordinated across requests: concurrent misses for one key each
run the downstream app and each commit, the last write winning.
"""

import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, TYPE_CHECKING

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from shared.errors import ResolutionError, StoreError
from shared.logging import get_logger, set_cache_key
from .capture import CapturingSend, http_date
from .keys import KeyResolver, resolve_key
from .store import LookupResult, RedisViewStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHEABLE_METHODS = frozenset({"GET"})
BYPASS_HEADER = "x-no-cache"
BYPASS_VALUE = "true"


class CacheDecision(str, Enum):
    """How a request left the cache-through pipeline."""

    SKIPPED = "skipped"
    HIT = "hit"
    MISS = "miss"
    BYPASS = "bypass"
    RESOLUTION_ERROR = "resolution_error"
    LOOKUP_ERROR = "lookup_error"


class CacheThroughController:
    """Serve GET responses from the store or capture and store them on the way out."""

    def __init__(
        self,
        store: RedisViewStore,
        resolver: KeyResolver,
        *,
        debug: bool = False,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.debug = debug
        self.metrics = metrics
        self.logger = get_logger("view_cache.controller")

    def _trace(self, event: str, **kwargs) -> None:
        if self.debug:
            self.logger.debug(event, **kwargs)

    def _record(self, decision: CacheDecision) -> CacheDecision:
        if self.metrics:
            self.metrics.record_cache_outcome(decision.value)
        return decision

    @staticmethod
    def is_cacheable(request: Request) -> bool:
        return request.method in CACHEABLE_METHODS

    @staticmethod
    def wants_bypass(request: Request) -> bool:
        return request.headers.get(BYPASS_HEADER) == BYPASS_VALUE

    async def handle(self, scope: Scope, receive: Receive, send: Send, app: ASGIApp) -> CacheDecision:
        """Run the cache-through pipeline for one HTTP request.

        ``app`` is the rest of the chain; it is awaited at most once, and not
        at all when the response is served from the store.
        """
        request = Request(scope, receive)

        if not self.is_cacheable(request):
            await app(scope, receive, send)
            return self._record(CacheDecision.SKIPPED)

        try:
            key, ttl_ms = await resolve_key(self.resolver, request)
        except ResolutionError as exc:
            self.logger.warning("Cache key resolution failed, serving uncached", path=scope.get("path"), error=exc.message)
            await app(scope, receive, send)
            return self._record(CacheDecision.RESOLUTION_ERROR)

        set_cache_key(key)
        self._trace("cache key", cache_key=key, ttl_ms=ttl_ms)

        if self.wants_bypass(request):
            return await self._bypass(key, scope, receive, send, app)

        started = time.perf_counter()
        try:
            result = await self.store.lookup(key)
        except StoreError:
            self._record(CacheDecision.LOOKUP_ERROR)
            raise
        finally:
            if self.metrics:
                self.metrics.observe_histogram("view_cache_lookup_duration_seconds", time.perf_counter() - started)

        if result.hit:
            self._trace("cache hit", cache_key=key, remaining_ttl_ms=result.remaining_ttl_ms)
            await self._replay(result, scope, receive, send)
            return self._record(CacheDecision.HIT)

        self._trace("cache miss", cache_key=key)
        await self._capture(key, ttl_ms, scope, receive, send, app)
        return self._record(CacheDecision.MISS)

    async def _bypass(self, key: str, scope: Scope, receive: Receive, send: Send, app: ASGIApp) -> CacheDecision:
        self._trace("no-cache header found", cache_key=key)
        try:
            await self.store.invalidate(key)
        except StoreError as exc:
            self.logger.warning("Cache invalidation failed, continuing uncached", cache_key=key, error=exc.message)
        await app(scope, receive, send)
        return self._record(CacheDecision.BYPASS)

    async def _replay(self, result: LookupResult, scope: Scope, receive: Receive, send: Send) -> None:
        record = result.record
        now = datetime.now(timezone.utc)
        headers = {
            "Expires": http_date(now + timedelta(milliseconds=result.remaining_ttl_ms)),
            "Last-Modified": http_date(record.saved_at),
        }
        if record.content_type:
            headers["Content-Type"] = record.content_type

        response = Response(content=record.content, status_code=record.status_code, headers=headers)
        await response(scope, receive, send)

    async def _capture(self, key: str, ttl_ms: int, scope: Scope, receive: Receive, send: Send, app: ASGIApp) -> None:
        capture = CapturingSend(send, ttl_ms)
        try:
            await app(scope, receive, capture)
        except BaseException:
            capture.discard()
            raise

        record = capture.record()
        if record is None:
            self.logger.warning("Response stream did not complete, nothing cached", cache_key=key)
            return

        try:
            await self.store.commit(key, record, ttl_ms)
        except StoreError as exc:
            # The caller already has the response; the entry is simply not stored.
            self.logger.error("Failed to store captured response", cache_key=key, error=exc.message)
            if self.metrics:
                self.metrics.record_cache_commit("error")
            return

        self._trace("captured response stored", cache_key=key, status_code=record.status_code, size=len(record.content))
        if self.metrics:
            self.metrics.record_cache_commit("ok")


class ViewCacheMiddleware:
    """ASGI middleware running a ``CacheThroughController`` in front of ``app``."""

    def __init__(self, app: ASGIApp, controller: CacheThroughController):
        self.app = app
        self.controller = controller

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.controller.handle(scope, receive, send, self.app)
        finally:
            set_cache_key(None)
