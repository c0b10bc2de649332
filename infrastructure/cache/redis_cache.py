from redis import asyncio as redis
from redis.exceptions import RedisError

from domain.exceptions.currency import CacheIOError


class RedisKeyValueStore:
    """KeyValueStore on a Redis instance. Keys never expire here; RateCache owns eviction."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    @classmethod
    def from_url(cls, redis_url: str) -> 'RedisKeyValueStore':
        return cls(redis.from_url(redis_url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            return await self.redis.get(key)
        except RedisError as e:
            raise CacheIOError(f'Redis GET {key} failed: {e}') from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis.set(key, value)
        except RedisError as e:
            raise CacheIOError(f'Redis SET {key} failed: {e}') from e

    async def remove(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError as e:
            raise CacheIOError(f'Redis DEL {key} failed: {e}') from e

    async def keys(self, prefix: str = '') -> list[str]:
        try:
            return [key async for key in self.redis.scan_iter(match=f'{prefix}*')]
        except RedisError as e:
            raise CacheIOError(f'Redis SCAN {prefix}* failed: {e}') from e

    async def close(self) -> None:
        await self.redis.aclose()
