import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_incrementing

from domain.exceptions.currency import FetchError, ProviderError, TransportError, ValidationError
from domain.models.currency import RateTable, clean_rate_table
from infrastructure.providers.base import RateProvider
from infrastructure.resilience.rate_limiter import RateLimiter
from utils.time import elapsed_ms

logger = logging.getLogger(__name__)

RATE_TABLE_FIELDS = ('rates', 'conversion_rates')


def extract_rate_table(data: dict[str, Any], provider_name: str | None = None) -> RateTable:
    """Pull the rate table out of a provider body, dropping entries that are not valid rates."""
    raw_rates = next(
        (data[name] for name in RATE_TABLE_FIELDS if isinstance(data.get(name), dict)),
        None,
    )
    if raw_rates is None:
        raise ValidationError('Invalid API response format: no rates object', provider_name=provider_name)

    table, skipped = clean_rate_table(raw_rates)
    if skipped:
        logger.warning(f'{provider_name or "provider"} returned unusable rates for {", ".join(skipped)}')
    if not table:
        raise ValidationError('Response contained no usable rates', provider_name=provider_name)
    return table


@dataclass
class FetchAttemptState:
    """Position of a fetch in the rounds x endpoints grid plus every error seen so far."""
    endpoint_count: int
    max_rounds: int
    round_index: int = 0
    endpoint_index: int = 0
    errors: list[ProviderError] = field(default_factory=list)

    @property
    def round_exhausted(self) -> bool:
        return self.endpoint_index >= self.endpoint_count

    @property
    def finished(self) -> bool:
        return self.round_index >= self.max_rounds

    @property
    def last_error(self) -> ProviderError | None:
        return self.errors[-1] if self.errors else None

    def record_failure(self, error: ProviderError) -> None:
        self.errors.append(error)
        self.endpoint_index += 1

    def complete_round(self) -> None:
        self.round_index += 1
        self.endpoint_index = 0


class RoundFailedError(Exception):
    """Every endpoint failed in one round; tenacity retries on this"""


class FetchPipeline:
    """
    Tries each endpoint in order, max_retries rounds, waiting
    backoff x round number between rounds. Rate limited per attempt,
    each attempt bounded by attempt_timeout. No caching here.
    """

    def __init__(
        self,
        providers: Sequence[RateProvider],
        rate_limiter: RateLimiter,
        max_retries: int = 3,
        attempt_timeout: float = 10.0,
        backoff: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not providers:
            raise ValueError('FetchPipeline needs at least one provider')
        self.providers = list(providers)
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.attempt_timeout = attempt_timeout
        self.backoff = backoff
        self._sleep = sleep

    async def fetch(self, base_currency: str) -> RateTable:
        state = FetchAttemptState(endpoint_count=len(self.providers), max_rounds=self.max_retries)
        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_exception_type(RoundFailedError),
            before_sleep=self._log_backoff,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._run_round(base_currency, state)
        except RoundFailedError:
            pass

        raise FetchError(
            f'All {len(self.providers)} endpoints failed in {state.round_index} rounds for {base_currency}: '
            f'{state.last_error}',
            errors=state.errors,
        ) from state.last_error

    async def _run_round(self, base_currency: str, state: FetchAttemptState) -> RateTable:
        while not state.round_exhausted:
            provider = self.providers[state.endpoint_index]
            await self.rate_limiter.acquire()

            start = time.perf_counter()
            try:
                async with asyncio.timeout(self.attempt_timeout):
                    data = await provider.fetch_latest(base_currency)
                table = extract_rate_table(data, provider.name)
            except TimeoutError as e:
                error = TransportError(
                    f'{provider.name} timed out after {self.attempt_timeout}s', provider_name=provider.name
                )
                error.__cause__ = e
            except ProviderError as e:
                error = e
            else:
                latency = elapsed_ms(start, time.perf_counter())
                logger.info(
                    f'Fetched {len(table)} rates for {base_currency} from {provider.name} '
                    f'(round {state.round_index + 1}, {latency:.0f}ms)',
                    extra={
                        'base_currency': base_currency,
                        'provider': provider.name,
                        'attempt': state.round_index + 1,
                        'latency_ms': latency,
                    },
                )
                return table

            logger.warning(
                f'Attempt {state.round_index + 1}/{self.max_retries} on {provider.name} failed '
                f'for {base_currency}: {error}',
                extra={'base_currency': base_currency, 'provider': provider.name, 'attempt': state.round_index + 1},
            )
            state.record_failure(error)

        state.complete_round()
        raise RoundFailedError(f'Round {state.round_index} failed for {base_currency}')

    @staticmethod
    def _log_backoff(retry_state: RetryCallState) -> None:
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.info(f'All endpoints failed in round {retry_state.attempt_number}, retrying in {wait:.1f}s')

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()
