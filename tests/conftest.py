"""
Shared test doubles: an in-memory KeyValueStore and a controllable clock.
"""

from datetime import UTC, datetime, timedelta

import pytest

from domain.exceptions.currency import CacheIOError


class InMemoryStore:
    """KeyValueStore backed by a dict. Set fail=True to make every call raise CacheIOError."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise CacheIOError('store unavailable')

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value):
        self._check()
        self.data[key] = value

    async def remove(self, key):
        self._check()
        self.data.pop(key, None)

    async def keys(self, prefix=''):
        self._check()
        return sorted(key for key in self.data if key.startswith(prefix))

    async def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC))
