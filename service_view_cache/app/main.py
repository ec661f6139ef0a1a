"""
View cache service: cached report and page views behind the cache-through middleware.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Body, Request, Response
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.routing import Mount

from shared.base_service import BaseService
from .caching import ViewCache, original_url


DEFAULT_LANGUAGE = "en"


class ReportCatalog:
    """In-memory report sources; counts renders so cache hits are observable."""

    def __init__(self):
        self.reports: Dict[str, str] = {
            "daily": "Daily summary",
            "weekly": "Weekly summary",
        }
        self.render_count: Dict[str, int] = {}

    def render(self, name: str) -> Optional[str]:
        title = self.reports.get(name)
        if title is None:
            return None
        self.render_count[name] = self.render_count.get(name, 0) + 1
        rendered_at = datetime.now(timezone.utc).isoformat()
        return f"{title}\nrendered_at={rendered_at}\n"

    def update(self, name: str, title: str) -> None:
        self.reports[name] = title


def preferred_language(request: Request) -> str:
    """First language tag of ``Accept-Language``, lower-cased."""
    header = request.headers.get("accept-language", "")
    first = header.split(",")[0].split(";")[0].strip().lower()
    return first or DEFAULT_LANGUAGE


class ViewCacheService(BaseService):
    """Service exposing cached views."""

    def __init__(self, options: Any = None, **cache_kwargs):
        super().__init__("view_cache", 8000)
        self.catalog = ReportCatalog()
        if options is None:
            options = self.config.cache_options()
            cache_kwargs.setdefault("debug", self.config.debug)
        self.view_cache = ViewCache(
            options,
            metrics=self.metrics,
            **cache_kwargs,
        )
        self.page_ttl_ms = self.config.default_ttl_ms * 2

        self._setup_view_routes()
        self._setup_page_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.view_cache_service = self

    async def on_shutdown(self) -> None:
        await self.view_cache.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check view cache dependencies."""
        return {"redis": "ok" if await self.view_cache.store.ping() else "error"}

    def resolve_page_key(self, request: Request) -> Tuple[str, int]:
        """Pages vary by language, so the key carries the preferred language."""
        return f"page:{preferred_language(request)}:{original_url(request)}", self.page_ttl_ms

    def _setup_view_routes(self):
        """Set up report views cached on their URL with the default TTL."""
        router = APIRouter()

        @router.get("/reports/{name}")
        async def get_report(name: str):
            """Render a report."""
            rendered = self.catalog.render(name)
            if rendered is None:
                return PlainTextResponse(f"unknown report {name}\n", status_code=404)
            return PlainTextResponse(rendered)

        @router.post("/reports/{name}")
        async def update_report(name: str, payload: Dict[str, str] = Body(...)):
            """Replace a report title. Never cached."""
            self.catalog.update(name, payload.get("title", name))
            self.logger.info("Report updated", report=name)
            return {"report": name, "updated": True}

        @router.get("/empty")
        async def get_empty():
            """A view with no content."""
            return Response(status_code=204)

        self.app.router.routes.append(
            Mount(
                "/views",
                routes=router.routes,
                middleware=[self.view_cache.caching_middleware(self.config.default_ttl_ms)],
            )
        )

    def _setup_page_routes(self):
        """Set up HTML pages cached per URL and language."""
        router = APIRouter()

        @router.get("/{slug}")
        async def get_page(slug: str, request: Request):
            """Render a page in the caller's language."""
            language = preferred_language(request)
            return HTMLResponse(f"<html lang=\"{language}\"><body><h1>{slug}</h1></body></html>")

        self.app.router.routes.append(
            Mount(
                "/pages",
                routes=router.routes,
                middleware=[self.view_cache.custom_caching_middleware(self.resolve_page_key)],
            )
        )


def create_app(options: Any = None, **cache_kwargs):
    """Create FastAPI application."""
    service = ViewCacheService(options, **cache_kwargs)
    return service.app


if __name__ == "__main__":
    service = ViewCacheService()
    service.run()
