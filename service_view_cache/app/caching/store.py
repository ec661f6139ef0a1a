"""
Redis store adapter for cached responses.

Each cached response is a Redis hash under its cache key with the fields
``savedAt``, ``contentType``, ``statusCode`` and ``content``. Expiry is left
to Redis: the key carries a TTL set in the same MULTI/EXEC block as the
fields, so an entry is never visible without one.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis

from shared.errors import StoreError
from shared.logging import get_logger


@dataclass(frozen=True)
class CacheRecord:
    """A stored response."""

    content: bytes
    content_type: str
    status_code: int
    saved_at: datetime

    def to_fields(self) -> Dict[str, Any]:
        return {
            "savedAt": self.saved_at.astimezone(timezone.utc).isoformat(),
            "contentType": self.content_type or "",
            "statusCode": str(self.status_code),
            "content": self.content,
        }

    @classmethod
    def from_fields(cls, fields: Dict[Any, Any]) -> "CacheRecord":
        """Build a record from an HGETALL reply (bytes or str keys and values)."""
        decoded = {_as_text(k): v for k, v in fields.items()}
        content = decoded.get("content", b"")
        if isinstance(content, str):
            content = content.encode("utf-8")
        return cls(
            content=content,
            content_type=_as_text(decoded.get("contentType", "")),
            status_code=int(_as_text(decoded.get("statusCode", "200"))),
            saved_at=_parse_timestamp(_as_text(decoded.get("savedAt", ""))),
        )


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a lookup: the record, if any, and the store's remaining TTL."""

    record: Optional[CacheRecord]
    remaining_ttl_ms: int

    @property
    def hit(self) -> bool:
        return self.record is not None


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _parse_timestamp(value: str) -> datetime:
    """Parse the stored ISO timestamp; unreadable values fall back to now."""
    try:
        if value.endswith("Z"):
            value = value.replace("Z", "+00:00")
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except ValueError:
        return datetime.now(timezone.utc)


class RedisViewStore:
    """Lookup, commit and invalidate cached responses in Redis.

    The client is injected and shared by every request; it must be a
    ``redis.asyncio.Redis`` (or compatible) instance. Responses are binary,
    so clients created with ``decode_responses=True`` only round-trip UTF-8
    bodies.
    """

    def __init__(self, client: redis.Redis):
        self.client = client
        self.logger = get_logger("view_cache.store")

    async def lookup(self, key: str) -> LookupResult:
        """Read the record and its remaining TTL as one unit."""
        try:
            async with self.client.pipeline(transaction=False) as pipe:
                pipe.hgetall(key)
                pipe.pttl(key)
                fields, remaining = await pipe.execute()
        except Exception as exc:
            self.logger.error("Cache lookup error", cache_key=key, error=str(exc))
            raise StoreError("lookup", str(exc), details={"cache_key": key}) from exc

        if not fields:
            return LookupResult(record=None, remaining_ttl_ms=0)

        try:
            record = CacheRecord.from_fields(fields)
        except (ValueError, UnicodeDecodeError) as exc:
            self.logger.warning("Discarding unreadable cache entry", cache_key=key, error=str(exc))
            return LookupResult(record=None, remaining_ttl_ms=0)

        # -1 (no expiry) and -2 (vanished between the two reads) carry no freshness
        return LookupResult(record=record, remaining_ttl_ms=max(0, int(remaining or 0)))

    async def commit(self, key: str, record: CacheRecord, ttl_ms: int) -> None:
        """Write every field and the expiry atomically, fields first."""
        ttl_seconds = ttl_ms // 1000
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=record.to_fields())
                pipe.expire(key, ttl_seconds)
                await pipe.execute()
        except Exception as exc:
            self.logger.error("Cache commit error", cache_key=key, error=str(exc))
            raise StoreError("commit", str(exc), details={"cache_key": key}) from exc

        self.logger.debug("Cached response", cache_key=key, ttl_seconds=ttl_seconds, size=len(record.content))

    async def invalidate(self, key: str) -> bool:
        """Delete the entry for ``key``. Returns whether an entry existed."""
        try:
            deleted = await self.client.delete(key)
        except Exception as exc:
            self.logger.error("Cache invalidate error", cache_key=key, error=str(exc))
            raise StoreError("invalidate", str(exc), details={"cache_key": key}) from exc

        self.logger.info("Invalidated cache entry", cache_key=key, existed=bool(deleted))
        return bool(deleted)

    async def ping(self) -> bool:
        """Check store connectivity."""
        try:
            return bool(await self.client.ping())
        except Exception as exc:
            self.logger.warning("Cache store ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        await self.client.aclose()
