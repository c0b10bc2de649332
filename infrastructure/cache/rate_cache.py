import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from domain.exceptions.currency import CacheIOError
from domain.models.currency import CacheEntry, CacheStats, RateTable, clean_rate_table
from infrastructure.cache.store import KeyValueStore
from utils.time import utc_now

logger = logging.getLogger(__name__)


class RateCache:
    """
    Rate tables keyed by base currency on top of a durable KeyValueStore.

    Staleness is advisory: get(..., allow_stale=True) returns whatever is
    stored, callers decide what is fresh enough. Entries older than
    2x TTL are purged by a sweep that runs after every put.
    """

    KEY_PREFIX = 'exchange_rates:'

    def __init__(
        self,
        store: KeyValueStore,
        ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.ttl = ttl
        self._clock = clock
        self._write_lock = asyncio.Lock()
        self._sweep_tasks: set[asyncio.Task] = set()

    @property
    def purge_after(self) -> timedelta:
        return self.ttl * 2

    def _make_key(self, base_currency: str) -> str:
        return f'{self.KEY_PREFIX}{base_currency}'

    async def get(self, base_currency: str, allow_stale: bool = False) -> CacheEntry | None:
        entry = await self._load(self._make_key(base_currency))
        if entry is None:
            logger.debug(f'Cache MISS for {base_currency}')
            return None

        age = entry.age(self._clock())
        if not allow_stale and age >= self.ttl:
            logger.debug(f'Cache STALE for {base_currency} (age {age.total_seconds():.0f}s)')
            return None

        logger.debug(f'Cache HIT for {base_currency} (age {age.total_seconds():.0f}s, stale allowed={allow_stale})')
        return entry

    async def put(self, base_currency: str, rates: RateTable) -> CacheEntry:
        entry = CacheEntry(base_currency=base_currency, rates=dict(rates), inserted_at=self._clock())
        payload = json.dumps({
            'base': entry.base_currency,
            'rates': entry.rates,
            'inserted_at': entry.inserted_at.isoformat(),
        })

        async with self._write_lock:
            try:
                await self.store.set(self._make_key(base_currency), payload)
            except CacheIOError as e:
                logger.warning(f'Failed to cache rates for {base_currency}: {e}')
                return entry

        self._schedule_sweep()
        return entry

    async def clear(self) -> None:
        async with self._write_lock:
            try:
                for key in await self.store.keys(self.KEY_PREFIX):
                    await self.store.remove(key)
            except CacheIOError as e:
                logger.warning(f'Failed to clear rate cache: {e}')
                return
        logger.info('Rate cache cleared')

    async def stats(self) -> CacheStats:
        try:
            keys = await self.store.keys(self.KEY_PREFIX)
            entry_count = 0
            total_size = 0
            oldest: datetime | None = None
            for key in keys:
                raw = await self.store.get(key)
                if raw is None:
                    continue
                entry_count += 1
                total_size += len(raw.encode('utf-8'))
                entry = self._decode(key, raw)
                if entry and (oldest is None or entry.inserted_at < oldest):
                    oldest = entry.inserted_at
        except CacheIOError as e:
            logger.warning(f'Could not collect cache stats: {e}')
            return CacheStats(entry_count=0, total_size_bytes=0, oldest_timestamp=None)

        return CacheStats(entry_count=entry_count, total_size_bytes=total_size, oldest_timestamp=oldest)

    async def sweep(self) -> int:
        """Remove entries older than 2x TTL (and unreadable ones). Returns how many were removed."""
        removed = 0
        async with self._write_lock:
            now = self._clock()
            for key in await self.store.keys(self.KEY_PREFIX):
                raw = await self.store.get(key)
                if raw is None:
                    continue
                entry = self._decode(key, raw)
                if entry is None or entry.age(now) > self.purge_after:
                    await self.store.remove(key)
                    removed += 1

        if removed:
            logger.info(f'Cache sweep removed {removed} expired entries')
        return removed

    async def aclose(self) -> None:
        """Wait for sweeps still in flight."""
        if self._sweep_tasks:
            await asyncio.gather(*self._sweep_tasks, return_exceptions=True)

    def _schedule_sweep(self) -> None:
        task = asyncio.get_running_loop().create_task(self._safe_sweep())
        self._sweep_tasks.add(task)
        task.add_done_callback(self._sweep_tasks.discard)

    async def _safe_sweep(self) -> None:
        try:
            await self.sweep()
        except CacheIOError as e:
            logger.warning(f'Cache sweep failed: {e}')
        except Exception:
            logger.exception('Unexpected error during cache sweep')

    async def _load(self, key: str) -> CacheEntry | None:
        try:
            raw = await self.store.get(key)
        except CacheIOError as e:
            logger.warning(f'Cache read failed for {key}, treating as miss: {e}')
            return None
        if raw is None:
            return None
        return self._decode(key, raw)

    def _decode(self, key: str, raw: str) -> CacheEntry | None:
        try:
            data = json.loads(raw)
            base_currency = data['base']
            if not isinstance(base_currency, str):
                raise TypeError(f'base must be a string, got {type(base_currency).__name__}')

            inserted_at = datetime.fromisoformat(data['inserted_at'])
            if inserted_at.utcoffset() is None:
                raise ValueError(f'inserted_at has no timezone: {data["inserted_at"]}')

            if not isinstance(data['rates'], dict):
                raise TypeError('rates is not an object')
            rates, skipped = clean_rate_table(data['rates'])
            if not rates:
                raise ValueError('no usable rates')
            if skipped:
                logger.warning(f'Dropped unusable cached rates at {key}: {", ".join(skipped)}')

            return CacheEntry(base_currency=base_currency, rates=rates, inserted_at=inserted_at)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f'Corrupt cache entry at {key}, ignoring: {e!r}')
            return None
