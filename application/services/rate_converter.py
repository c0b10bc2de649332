import asyncio
import logging

from application.services.conversion_service import convert, popular_rates
from application.services.debouncer import DEFAULT_QUIET_PERIOD_SECONDS, Debouncer
from application.services.resolution_engine import ResolutionEngine
from application.services.state_broadcaster import StateBroadcaster, StateCallback, Subscription
from domain.models.currency import (
    CacheStats,
    ConversionResult,
    EngineState,
    MetricsSnapshot,
    ResolutionResult,
    normalize_currency_code,
)

logger = logging.getLogger(__name__)

CACHE_CLEARED_MESSAGE = 'Cache cleared - fetching fresh data...'


class RateConverter:
    """
    The surface presentation code talks to: subscribe to state, request
    rates (debounced), convert amounts against the current table, read
    metrics and manage the cache. Construct one per session and close()
    it on shutdown.
    """

    def __init__(
        self,
        engine: ResolutionEngine,
        broadcaster: StateBroadcaster | None = None,
        debounce_seconds: float = DEFAULT_QUIET_PERIOD_SECONDS,
        default_base_currency: str = 'USD',
    ):
        self.engine = engine
        self.broadcaster = broadcaster or StateBroadcaster(EngineState(is_online=engine.is_online))
        self.default_base_currency = normalize_currency_code(default_base_currency)
        self._last_base = self.default_base_currency
        self._debouncer: Debouncer[ResolutionResult] = Debouncer(self._load_rates, delay=debounce_seconds)
        self._reconnect_task: asyncio.Task | None = None
        self._unsubscribe_connectivity = engine.connectivity.subscribe(self._on_connectivity_change)

    @property
    def last_base_currency(self) -> str:
        return self._last_base

    async def start(self, base_currency: str | None = None) -> ResolutionResult:
        """Initial load of the default (or given) base."""
        return await self.load_rates(base_currency)

    def subscribe(self, callback: StateCallback) -> Subscription:
        return self.broadcaster.subscribe(callback)

    def get_state(self) -> EngineState:
        return self.broadcaster.state

    async def fetch_rates(self, base_currency: str | None = None, force_refresh: bool = False) -> ResolutionResult | None:
        """Debounced resolve; returns None when a later call superseded this one."""
        base = normalize_currency_code(base_currency or self.default_base_currency)
        return await self._debouncer.trigger(base, force_refresh)

    async def load_rates(self, base_currency: str | None = None, force_refresh: bool = False) -> ResolutionResult:
        """Resolve immediately, without joining the debounce window."""
        base = normalize_currency_code(base_currency or self.default_base_currency)
        return await self._load_rates(base, force_refresh)

    async def refresh_rates(self) -> ResolutionResult | None:
        return await self.fetch_rates(self._last_base, force_refresh=True)

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> ConversionResult:
        from_currency = normalize_currency_code(from_currency)
        to_currency = normalize_currency_code(to_currency)
        if amount <= 0:
            return ConversionResult(0.0, 0.0)

        if not self.broadcaster.state.rates:
            await self._load_rates(from_currency, False)

        state = self.broadcaster.state
        return convert(
            amount,
            from_currency,
            to_currency,
            state.rates,
            base=state.base_currency or self.default_base_currency,
            on_missing_rate=self.engine.metrics.record_missing_rate,
        )

    def popular_rates(self) -> list[dict]:
        state = self.broadcaster.state
        return popular_rates(state.rates, base=state.base_currency or self.default_base_currency)

    def get_metrics(self) -> MetricsSnapshot:
        return self.engine.metrics.snapshot()

    async def get_cache_stats(self) -> CacheStats:
        return await self.engine.cache_stats()

    async def clear_cache(self) -> ResolutionResult:
        await self.engine.clear_cache()
        self.broadcaster.set_state(rates={}, last_update=None, provenance=None, error=CACHE_CLEARED_MESSAGE)
        return await self._load_rates(self.default_base_currency, False)

    async def set_online(self, is_online: bool) -> None:
        """Host connectivity signal. Going online replays queued requests and refreshes the last base."""
        self.engine.set_online(is_online)
        if is_online and self._reconnect_task is not None:
            await self._reconnect_task

    async def close(self) -> None:
        self._unsubscribe_connectivity()
        await self._debouncer.aclose()
        if self._reconnect_task is not None and not self._reconnect_task.done():
            await asyncio.gather(self._reconnect_task, return_exceptions=True)
        await self.engine.close()

    async def _load_rates(self, base_currency: str, force_refresh: bool) -> ResolutionResult:
        self._last_base = base_currency
        self.broadcaster.set_state(loading=True, error=None)
        result = await self.engine.resolve(base_currency, force_refresh)
        self._publish(result)
        return result

    def _publish(self, result: ResolutionResult) -> None:
        self.broadcaster.set_state(
            loading=False,
            rates=result.rates,
            base_currency=result.base_currency,
            last_update=result.timestamp,
            error=result.warning,
            provenance=result.provenance,
        )

    def _on_connectivity_change(self, is_online: bool) -> None:
        self.broadcaster.set_state(is_online=is_online)
        if not is_online:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning('Connectivity restored outside an event loop; refresh skipped')
            return
        self._reconnect_task = loop.create_task(self._handle_reconnect())

    async def _handle_reconnect(self) -> None:
        replayed = await self.engine.replay_pending()
        latest = next((r for r in reversed(replayed) if r.base_currency == self._last_base), None)
        if latest is not None:
            self._publish(latest)
        else:
            await self._load_rates(self._last_base, True)
