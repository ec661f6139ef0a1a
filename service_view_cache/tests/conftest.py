"""
Shared fixtures for view cache tests.
"""

import time
from typing import Any, Dict, List, Optional, Tuple

import pytest


class InMemoryRedis:
    """Asyncio Redis double covering the commands the view cache issues.

    Hashes live in a dict, expiry deadlines are tracked with a monotonic
    clock so TTL behaviour is real wall-clock behaviour.
    """

    def __init__(self):
        self.hashes: Dict[str, Dict[bytes, bytes]] = {}
        self.deadlines: Dict[str, float] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: set = set()
        self.closed = False

    def _check(self, command: str, key: str = "") -> None:
        self.calls.append((command, key))
        if command in self.fail_on:
            raise ConnectionError(f"{command} failed")

    def _purge(self, key: str) -> None:
        deadline = self.deadlines.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self.hashes.pop(key, None)
            self.deadlines.pop(key, None)

    @staticmethod
    def _encode(value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")

    def stored(self, key: str) -> Optional[Dict[str, bytes]]:
        """Decoded view of a stored hash, for assertions."""
        self._purge(key)
        entry = self.hashes.get(key)
        if entry is None:
            return None
        return {field.decode("utf-8"): value for field, value in entry.items()}

    async def hgetall(self, key: str) -> Dict[bytes, bytes]:
        self._check("hgetall", key)
        self._purge(key)
        return dict(self.hashes.get(key, {}))

    async def pttl(self, key: str) -> int:
        self._check("pttl", key)
        self._purge(key)
        if key not in self.hashes:
            return -2
        deadline = self.deadlines.get(key)
        if deadline is None:
            return -1
        return max(0, int((deadline - time.monotonic()) * 1000))

    async def hset(self, key: str, mapping: Dict[str, Any]) -> int:
        self._check("hset", key)
        self._purge(key)
        entry = self.hashes.setdefault(key, {})
        added = sum(1 for field in mapping if self._encode(field) not in entry)
        entry.update({self._encode(k): self._encode(v) for k, v in mapping.items()})
        return added

    async def expire(self, key: str, seconds: int) -> bool:
        self._check("expire", key)
        self._purge(key)
        if key not in self.hashes:
            return False
        if seconds <= 0:
            self.hashes.pop(key, None)
            self.deadlines.pop(key, None)
        else:
            self.deadlines[key] = time.monotonic() + seconds
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete", keys[0] if keys else "")
        deleted = 0
        for key in keys:
            self._purge(key)
            if self.hashes.pop(key, None) is not None:
                deleted += 1
            self.deadlines.pop(key, None)
        return deleted

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def aclose(self) -> None:
        self.closed = True

    def pipeline(self, transaction: bool = True) -> "InMemoryPipeline":
        return InMemoryPipeline(self, transaction)


class InMemoryPipeline:
    """Queues commands and runs them in order on ``execute``."""

    def __init__(self, client: InMemoryRedis, transaction: bool):
        self.client = client
        self.transaction = transaction
        self.commands: List[Tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "InMemoryPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.commands.clear()

    def __getattr__(self, name: str):
        if not hasattr(InMemoryRedis, name):
            raise AttributeError(name)

        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> List[Any]:
        self.client.calls.append(("execute", "multi" if self.transaction else "pipeline"))
        if self.transaction:
            # MULTI/EXEC: refuse the whole block before touching any data
            for name, args, _ in self.commands:
                if name in self.client.fail_on:
                    raise ConnectionError(f"{name} failed")
        results = []
        for name, args, kwargs in self.commands:
            results.append(await getattr(self.client, name)(*args, **kwargs))
        return results


@pytest.fixture
def redis_client() -> InMemoryRedis:
    """In-memory stand-in for ``redis.asyncio.Redis``."""
    return InMemoryRedis()

