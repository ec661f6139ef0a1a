"""
Response capture for cache misses.
"""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import List, Optional

from starlette.datastructures import MutableHeaders
from starlette.types import Message, Send

from .store import CacheRecord


def http_date(value: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP-date."""
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


class CapturingSend:
    """Decorates an ASGI ``send`` so the downstream response is both delivered and recorded.

    Every message is forwarded unchanged, apart from the ``Expires`` and
    ``Last-Modified`` headers injected into ``http.response.start``. Body
    chunks are appended to an in-memory buffer. The capture only counts as
    complete once the final body message (``more_body`` false) has been
    forwarded without error; an exception from the app or the transport
    leaves it incomplete and ``record()`` returns ``None``.
    """

    def __init__(self, send: Send, ttl_ms: int):
        self._send = send
        self.ttl_ms = ttl_ms
        self.status_code: Optional[int] = None
        self.content_type = ""
        self.saved_at: Optional[datetime] = None
        self.completed = False
        self._chunks: List[bytes] = []

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            now = datetime.now(timezone.utc)
            headers = MutableHeaders(scope=message)
            headers["Expires"] = http_date(now + timedelta(milliseconds=self.ttl_ms))
            headers["Last-Modified"] = http_date(now)
            self.status_code = message["status"]
            self.content_type = headers.get("content-type", "")
            self.saved_at = now
            await self._send(message)
            return

        if message_type == "http.response.body":
            body = message.get("body", b"")
            if body:
                self._chunks.append(bytes(body))
            await self._send(message)
            if not message.get("more_body", False):
                self.completed = True
            return

        await self._send(message)

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def record(self) -> Optional[CacheRecord]:
        """The captured response, or ``None`` if the stream did not finish."""
        if not self.completed or self.status_code is None:
            return None
        return CacheRecord(
            content=self.body,
            content_type=self.content_type,
            status_code=self.status_code,
            saved_at=self.saved_at or datetime.now(timezone.utc),
        )

    def discard(self) -> None:
        self._chunks.clear()
        self.completed = False
