"""
Cache key and TTL resolution for incoming requests.
"""

import inspect
from typing import Any, Awaitable, Callable, Tuple, Union

from starlette.requests import Request

from shared.config import DEFAULT_TTL_MS
from shared.errors import ConfigurationError, ResolutionError


ResolvedKey = Tuple[str, int]
KeyResolver = Callable[[Request], Union[ResolvedKey, Awaitable[ResolvedKey]]]


def parse_ttl_ms(value: Any, default: int = DEFAULT_TTL_MS) -> int:
    """Parse a millisecond TTL given at construction time.

    ``None`` selects ``default``. Integers and integral numeric strings are
    accepted; anything else, and anything not strictly positive, raises
    ``ConfigurationError``.
    """
    if value is None:
        return default

    if isinstance(value, bool):
        raise ConfigurationError(
            f"error parsing {value!r} as positive integer",
            details={"ttl_ms": repr(value)}
        )

    try:
        if isinstance(value, str):
            ttl = int(value.strip(), 10)
        elif isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            ttl = int(value)
        else:
            ttl = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"error parsing {value!r} as positive integer",
            details={"ttl_ms": repr(value)}
        ) from None

    if ttl <= 0:
        raise ConfigurationError(
            f"error parsing {value!r} as positive integer",
            details={"ttl_ms": ttl}
        )
    return ttl


def original_url(request: Request) -> str:
    """Full original path of the request, query string included."""
    scope = request.scope
    raw_path = scope.get("raw_path")
    if raw_path:
        # raw_path is untouched by mounts; some servers leave the query on it
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        root_path = scope.get("root_path", "")
        path = scope["path"]
        if root_path and not path.startswith(root_path):
            path = root_path + path
    query_string = scope.get("query_string", b"")
    if query_string:
        return f"{path}?{query_string.decode('latin-1')}"
    return path


def path_key_resolver(ttl_ms: int) -> KeyResolver:
    """Resolver keyed on the original URL with a fixed TTL."""

    def resolve(request: Request) -> ResolvedKey:
        return original_url(request), ttl_ms

    return resolve


async def resolve_key(resolver: KeyResolver, request: Request) -> ResolvedKey:
    """Run ``resolver`` and validate its result.

    Every failure, including an exception raised by the resolver itself, is
    reported as ``ResolutionError`` so the caller can fail open.
    """
    try:
        result = resolver(request)
        if inspect.isawaitable(result):
            result = await result
        key, ttl = result
    except ResolutionError:
        raise
    except Exception as exc:
        raise ResolutionError(str(exc) or type(exc).__name__, details={"error_type": type(exc).__name__}) from exc

    if not isinstance(key, str) or not key:
        raise ResolutionError("resolver returned an empty cache key", details={"key": repr(key)})

    if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
        raise ResolutionError("resolver returned a non-positive TTL", details={"ttl_ms": repr(ttl)})

    return key, ttl
