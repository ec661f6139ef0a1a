"""
Shared configuration management for the view cache services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TTL_MS = 30000


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Every field can be overridden with a ``VIEW_CACHE_``-prefixed environment
    variable (``VIEW_CACHE_REDIS_URL``, ``VIEW_CACHE_DEBUG``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="VIEW_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Store connection. ``redis_url`` wins over the discrete fields when set.
    redis_url: Optional[str] = Field(default=None)
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_password: Optional[str] = Field(default=None)

    # Caching
    debug: bool = Field(default=False)
    default_ttl_ms: int = Field(default=DEFAULT_TTL_MS, gt=0)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)

    def cache_options(self):
        """Return the construction options for a ``ViewCache`` built from this config."""
        if self.redis_url:
            return self.redis_url
        return {
            "host": self.redis_host,
            "port": self.redis_port,
            "pass": self.redis_password,
        }


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
