"""
View Cache Service package.

Caches full GET responses in Redis behind an ASGI middleware:
- Cache-through: replay stored responses, capture and store misses
- TTL expiry handled by Redis itself
- Client-forced refresh with ``x-no-cache: true``

Structure:
- app.main: FastAPI service wiring cached views and pages.
- app.caching: key resolution, store adapter, response capture, controller.
"""
