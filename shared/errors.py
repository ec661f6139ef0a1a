"""
Shared error handling for the view cache services.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ViewCacheException(Exception):
    """Base exception for the view cache layer."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(ViewCacheException):
    """Invalid construction-time configuration (connection string, TTL, options)."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class ResolutionError(ViewCacheException):
    """The key/TTL resolver could not produce a usable cache key for a request."""

    status_code = 400

    def __init__(self, message: str = "Cache key resolution failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("RESOLUTION_ERROR", message, details)


class StoreError(ViewCacheException):
    """A lookup, commit or invalidate call against the store failed."""

    status_code = 503

    def __init__(self, operation: str, message: str = "Cache store error", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("STORE_ERROR", f"{operation}: {message}", details)
