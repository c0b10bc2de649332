import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime

from application.services.connectivity import ConnectivityMonitor
from application.services.fetch_pipeline import FetchPipeline
from application.services.metrics import MetricsCollector
from domain.exceptions.currency import FetchError
from domain.fallback_rates import FALLBACK_BASE_CURRENCY, static_fallback_table
from domain.models.currency import CacheEntry, CacheStats, Provenance, RateTable, ResolutionResult, normalize_currency_code
from infrastructure.cache.rate_cache import RateCache
from utils.time import elapsed_ms, utc_now

logger = logging.getLogger(__name__)

OFFLINE_PREFIX = 'Offline'
UNAVAILABLE_PREFIX = 'Live rates unavailable'


class ResolutionEngine:
    """
    Resolves a rate table for a base currency:
    fresh cache -> (offline: stale cache -> static table) -> network
    -> (failure: stale cache -> static table).

    resolve() always returns a usable table; failures only show up as
    the provenance tag and warning of the result.
    """

    def __init__(
        self,
        cache: RateCache,
        pipeline: FetchPipeline,
        metrics: MetricsCollector,
        connectivity: ConnectivityMonitor | None = None,
        fallback_table: Callable[[str], RateTable] = static_fallback_table,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache = cache
        self.pipeline = pipeline
        self.metrics = metrics
        self.connectivity = connectivity or ConnectivityMonitor()
        self._fallback_table = fallback_table
        self._clock = clock
        self._pending: deque[str] = deque()
        self._admission = asyncio.Lock()

    @property
    def is_online(self) -> bool:
        return self.connectivity.is_online

    @property
    def pending_bases(self) -> list[str]:
        return list(self._pending)

    def set_online(self, is_online: bool) -> bool:
        return self.connectivity.set_online(is_online)

    async def resolve(self, base_currency: str, force_refresh: bool = False) -> ResolutionResult:
        base = normalize_currency_code(base_currency)

        # Requests arriving while the offline queue drains wait for it to finish
        if self._admission.locked():
            async with self._admission:
                pass

        return await self._resolve(base, force_refresh)

    async def replay_pending(self) -> list[ResolutionResult]:
        """Re-resolve, oldest first and with a forced refresh, every base requested while offline."""
        results = []
        async with self._admission:
            while self._pending and self.is_online:
                base = self._pending.popleft()
                logger.info(f'Replaying offline request for {base}')
                results.append(await self._resolve(base, force_refresh=True))
        return results

    async def clear_cache(self) -> None:
        await self.cache.clear()

    async def cache_stats(self) -> CacheStats:
        return await self.cache.stats()

    async def close(self) -> None:
        await self.cache.aclose()
        await self.pipeline.close()
        await self.cache.store.close()

    async def _resolve(self, base: str, force_refresh: bool) -> ResolutionResult:
        start = time.perf_counter()
        try:
            if not force_refresh:
                entry = await self.cache.get(base)
                if entry is not None:
                    self.metrics.record_cache_hit(elapsed_ms(start, time.perf_counter()))
                    return self._from_cache(entry, Provenance.CACHE)

            if not self.is_online:
                if base not in self._pending:
                    self._pending.append(base)
                return await self._fallback(base, OFFLINE_PREFIX, Provenance.OFFLINE_CACHE, Provenance.STATIC_FALLBACK)

            try:
                rates = await self.pipeline.fetch(base)
            except FetchError as e:
                self.metrics.record_error(elapsed_ms(start, time.perf_counter()), str(e))
                logger.error(f'Could not fetch rates for {base}, falling back: {e}')
                return await self._fallback(
                    base, UNAVAILABLE_PREFIX, Provenance.ERROR_CACHE_FALLBACK, Provenance.ERROR_STATIC_FALLBACK
                )

            entry = await self.cache.put(base, rates)
            self.metrics.record_success(elapsed_ms(start, time.perf_counter()))
            return ResolutionResult(
                base_currency=base, rates=rates, timestamp=entry.inserted_at, provenance=Provenance.NETWORK
            )

        except Exception as e:
            logger.exception(f'Unexpected failure resolving {base}')
            self.metrics.record_error(elapsed_ms(start, time.perf_counter()), repr(e))
            return await self._fallback(
                base, UNAVAILABLE_PREFIX, Provenance.ERROR_CACHE_FALLBACK, Provenance.ERROR_STATIC_FALLBACK
            )

    async def _fallback(
        self, base: str, reason: str, cache_tag: Provenance, static_tag: Provenance
    ) -> ResolutionResult:
        entry = await self._stale_entry(base)
        if entry is not None:
            refreshed = entry.inserted_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()
            return self._from_cache(entry, cache_tag, warning=f'{reason}: showing last refreshed rates from {refreshed}')

        table = self._fallback_table(base)
        quoted_in = self._quote_currency(base, table)
        warning = f'{reason}: using approximate built-in rates'
        if quoted_in != base:
            warning += f' (quoted in {quoted_in})'
        logger.warning(f'{warning} for {base}', extra={'base_currency': base, 'provenance': static_tag.value})
        return ResolutionResult(
            base_currency=quoted_in,
            rates=table,
            timestamp=self._clock(),
            provenance=static_tag,
            warning=warning,
        )

    async def _stale_entry(self, base: str) -> CacheEntry | None:
        try:
            return await self.cache.get(base, allow_stale=True)
        except Exception:
            logger.exception(f'Stale cache lookup failed for {base}')
            return None

    @staticmethod
    def _quote_currency(base: str, table: RateTable) -> str:
        """The currency a static table is quoted in: the one it prices at exactly 1."""
        if table.get(base) == 1.0:
            return base
        return next((code for code, rate in table.items() if rate == 1.0), FALLBACK_BASE_CURRENCY)

    @staticmethod
    def _from_cache(entry: CacheEntry, provenance: Provenance, warning: str | None = None) -> ResolutionResult:
        return ResolutionResult(
            base_currency=entry.base_currency,
            rates=dict(entry.rates),
            timestamp=entry.inserted_at,
            provenance=provenance,
            warning=warning,
        )
