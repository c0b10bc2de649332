import logging
from datetime import timedelta

from application.services.connectivity import ConnectivityMonitor
from application.services.fetch_pipeline import FetchPipeline
from application.services.metrics import MetricsCollector
from application.services.rate_converter import RateConverter
from application.services.resolution_engine import ResolutionEngine
from config.settings import Settings
from infrastructure.cache.rate_cache import RateCache
from infrastructure.cache.redis_cache import RedisKeyValueStore
from infrastructure.cache.store import KeyValueStore
from infrastructure.persistence.database import Database
from infrastructure.persistence.repositories.kv_store import SqlKeyValueStore
from infrastructure.providers import ExchangeRateAPIProvider, OpenERAPIProvider, RateProvider
from infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Creates and wires the resolution stack from Settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def create_store(self) -> KeyValueStore:
        if self.settings.CACHE_BACKEND == 'redis':
            logger.info('Using Redis cache store')
            return RedisKeyValueStore.from_url(self.settings.REDIS_URL)

        database = Database(self.settings.DATABASE_URL)
        await database.create_tables()
        logger.info('Using SQL cache store')
        return SqlKeyValueStore(database)

    def create_providers(self) -> list[RateProvider]:
        timeout = self.settings.REQUEST_TIMEOUT_SECONDS
        return [
            ExchangeRateAPIProvider(base_url=self.settings.PRIMARY_RATES_URL, timeout=timeout),
            OpenERAPIProvider(base_url=self.settings.FALLBACK_RATES_URL, timeout=timeout),
        ]

    def create_pipeline(self, providers: list[RateProvider] | None = None) -> FetchPipeline:
        return FetchPipeline(
            providers=providers or self.create_providers(),
            rate_limiter=RateLimiter(min_interval=self.settings.MIN_REQUEST_INTERVAL_SECONDS),
            max_retries=self.settings.MAX_RETRIES,
            attempt_timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            backoff=self.settings.RETRY_BACKOFF_SECONDS,
        )

    async def create_engine(self, store: KeyValueStore | None = None) -> ResolutionEngine:
        cache = RateCache(
            store or await self.create_store(),
            ttl=timedelta(seconds=self.settings.CACHE_TTL_SECONDS),
        )
        return ResolutionEngine(
            cache=cache,
            pipeline=self.create_pipeline(),
            metrics=MetricsCollector(),
            connectivity=ConnectivityMonitor(),
        )

    async def create_rate_converter(self, store: KeyValueStore | None = None) -> RateConverter:
        engine = await self.create_engine(store)
        converter = RateConverter(
            engine,
            debounce_seconds=self.settings.DEBOUNCE_SECONDS,
            default_base_currency=self.settings.DEFAULT_BASE_CURRENCY,
        )
        logger.info(
            f'Rate converter created with {len(engine.pipeline.providers)} providers, '
            f'cache TTL {self.settings.CACHE_TTL_SECONDS}s'
        )
        return converter
