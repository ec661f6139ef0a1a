"""
Shared utilities for the view cache service.

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and cache key correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton with health and metrics routes

Do not import from service packages into shared/.
"""
