"""Shared test fixtures."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import asyncio
import fnmatch
from collections import defaultdict, deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from src.main import app
from src.pt_cache.cache import Cache


class FakeRedis:
    """In-memory stand-in for the slice of redis.asyncio.Redis the app uses.

    TTLs are recorded, not enforced. blpop on an empty list sleeps for the
    timeout and returns None. Set `fail = True` to simulate an outage.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, Any] = {}
        self.lists: dict[str, deque[str]] = defaultdict(deque)
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def set(self, key: str, value: Any, ex: Any = None) -> bool:
        self._check()
        self.values[key] = value.decode() if isinstance(value, bytes) else str(value)
        self.ttls[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.values.get(key)

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def scan_iter(self, match: str | None = None) -> AsyncIterator[str]:
        self._check()
        for key in list(self.values):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def rpush(self, name: str, *values: str) -> int:
        self._check()
        self.lists[name].extend(values)
        return len(self.lists[name])

    async def blpop(self, keys: list[str], timeout: float = 0) -> tuple[str, str] | None:
        self._check()
        for name in keys:
            if self.lists[name]:
                return name, self.lists[name].popleft()
        await asyncio.sleep(timeout)
        return None

    async def llen(self, name: str) -> int:
        self._check()
        return len(self.lists[name])


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> Cache:
    return Cache(fake_redis, default_ttl=60)  # type: ignore[arg-type]


@pytest.fixture
def session_factory() -> Any:
    """Stand-in for async_session_factory; every opened session is recorded."""
    sessions: list[AsyncMock] = []

    @asynccontextmanager
    async def _factory() -> AsyncIterator[AsyncMock]:
        db = AsyncMock()
        sessions.append(db)
        yield db

    _factory.sessions = sessions  # type: ignore[attr-defined]
    return _factory


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints (lifespan not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
