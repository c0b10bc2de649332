# nosec B101


import json
from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, call

from application.services.connectivity import ConnectivityMonitor
from application.services.fetch_pipeline import FetchPipeline
from application.services.metrics import MetricsCollector
from application.services.resolution_engine import ResolutionEngine
from domain.exceptions.currency import FetchError, InvalidCurrencyError, TransportError
from domain.models.currency import Provenance
from infrastructure.cache.rate_cache import RateCache

USD_RATES = {'EUR': 0.85, 'GBP': 0.73, 'JPY': 150.0}


@pytest.fixture
def pipeline():
    pipeline = AsyncMock(spec=FetchPipeline)
    pipeline.fetch.return_value = dict(USD_RATES)
    return pipeline


@pytest.fixture
def engine(memory_store, clock, pipeline):
    cache = RateCache(memory_store, ttl=timedelta(minutes=5), clock=clock)
    return ResolutionEngine(
        cache=cache,
        pipeline=pipeline,
        metrics=MetricsCollector(),
        connectivity=ConnectivityMonitor(),
        clock=clock,
    )


def fetch_failure():
    cause = TransportError('connection refused', provider_name='primary')
    return FetchError('All endpoints failed', errors=[cause])


@pytest.mark.asyncio
async def test_cache_miss_fetches_from_network_and_caches(engine, pipeline, clock):
    result = await engine.resolve('USD')

    assert result.provenance == Provenance.NETWORK
    assert result.rates == USD_RATES
    assert result.timestamp == clock.now
    assert result.warning is None
    assert not result.is_fallback
    pipeline.fetch.assert_awaited_once_with('USD')
    assert (await engine.cache.get('USD')).rates == USD_RATES
    assert engine.metrics.snapshot().network_success_count == 1


@pytest.mark.asyncio
async def test_fresh_cache_hit_skips_network(engine, pipeline):
    await engine.resolve('USD')
    pipeline.fetch.reset_mock()

    result = await engine.resolve('usd')

    assert result.provenance == Provenance.CACHE
    assert result.rates == USD_RATES
    pipeline.fetch.assert_not_called()
    assert engine.metrics.snapshot().cache_hit_count == 1


@pytest.mark.asyncio
async def test_force_refresh_bypasses_fresh_cache(engine, pipeline):
    await engine.resolve('USD')
    pipeline.fetch.return_value = {'EUR': 0.9}

    result = await engine.resolve('USD', force_refresh=True)

    assert result.provenance == Provenance.NETWORK
    assert result.rates == {'EUR': 0.9}
    assert pipeline.fetch.await_count == 2


@pytest.mark.asyncio
async def test_stale_cache_is_refetched(engine, pipeline, clock):
    await engine.resolve('USD')
    clock.advance(minutes=6)

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.NETWORK
    assert pipeline.fetch.await_count == 2


@pytest.mark.asyncio
async def test_fetch_failure_serves_stale_cache(engine, pipeline, clock):
    await engine.resolve('USD')
    inserted_at = clock.now
    clock.advance(minutes=8)
    pipeline.fetch.side_effect = fetch_failure()

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.ERROR_CACHE_FALLBACK
    assert result.rates == USD_RATES
    assert result.timestamp == inserted_at
    assert 'last refreshed' in result.warning
    assert result.is_fallback
    snapshot = engine.metrics.snapshot()
    assert snapshot.error_count == 1
    assert 'All endpoints failed' in snapshot.last_error


@pytest.mark.asyncio
async def test_fetch_failure_without_cache_serves_static_table(engine, pipeline, clock):
    pipeline.fetch.side_effect = fetch_failure()

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.ERROR_STATIC_FALLBACK
    assert result.base_currency == 'USD'
    assert result.rates['USD'] == 1.0
    assert result.rates['EUR'] == 0.876
    assert result.timestamp == clock.now
    assert 'approximate' in result.warning


@pytest.mark.asyncio
async def test_static_table_is_rebased_for_known_base(engine, pipeline):
    pipeline.fetch.side_effect = fetch_failure()

    result = await engine.resolve('EUR')

    assert result.base_currency == 'EUR'
    assert result.rates['EUR'] == pytest.approx(1.0)
    assert result.rates['USD'] == pytest.approx(1 / 0.876)


@pytest.mark.asyncio
async def test_static_table_for_unknown_base_is_quoted_in_usd(engine, pipeline):
    pipeline.fetch.side_effect = fetch_failure()

    result = await engine.resolve('XAU')

    assert result.base_currency == 'USD'
    assert 'quoted in USD' in result.warning
    assert result.rates['USD'] == 1.0


@pytest.mark.asyncio
async def test_unexpected_error_still_returns_a_table(engine, pipeline):
    pipeline.fetch.side_effect = RuntimeError('boom')

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.ERROR_STATIC_FALLBACK
    assert engine.metrics.snapshot().error_count == 1


@pytest.mark.asyncio
async def test_broken_cache_store_still_resolves(engine, pipeline, memory_store):
    memory_store.fail = True

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.NETWORK
    assert result.rates == USD_RATES


@pytest.mark.asyncio
@pytest.mark.parametrize('stored', [
    {'base': 'USD', 'rates': {'EUR': 0.9}, 'inserted_at': '2025-06-01T11:59:00'},
    {'base': 'USD', 'rates': {}, 'inserted_at': '2025-06-01T11:59:00+00:00'},
    {'base': 'USD', 'rates': {'EUR': -1.0, 'GBP': 0}, 'inserted_at': '2025-06-01T11:59:00+00:00'},
])
async def test_corrupt_cache_entry_falls_through_to_network(engine, pipeline, memory_store, stored):
    memory_store.data['exchange_rates:USD'] = json.dumps(stored)

    first = await engine.resolve('USD')
    second = await engine.resolve('USD')

    assert first.provenance == Provenance.NETWORK
    assert first.rates == USD_RATES
    assert second.provenance == Provenance.CACHE
    pipeline.fetch.assert_awaited_once_with('USD')
    assert engine.metrics.snapshot().error_count == 0


@pytest.mark.asyncio
async def test_corrupt_cache_entry_is_not_served_as_stale_fallback(engine, pipeline, memory_store):
    pipeline.fetch.side_effect = fetch_failure()
    memory_store.data['exchange_rates:USD'] = json.dumps(
        {'base': 'USD', 'rates': {'EUR': 0.9}, 'inserted_at': '2025-06-01T11:59:00'}
    )

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.ERROR_STATIC_FALLBACK
    pipeline.fetch.assert_awaited_once_with('USD')


@pytest.mark.asyncio
async def test_custom_fallback_table_reports_its_own_quote_currency(memory_store, clock, pipeline):
    pipeline.fetch.side_effect = fetch_failure()
    engine = ResolutionEngine(
        cache=RateCache(memory_store, ttl=timedelta(minutes=5), clock=clock),
        pipeline=pipeline,
        metrics=MetricsCollector(),
        fallback_table=lambda base: {'EUR': 1.0, 'USD': 1.1},
        clock=clock,
    )

    usd = await engine.resolve('USD')
    eur = await engine.resolve('EUR')

    assert usd.base_currency == 'EUR'
    assert usd.rates == {'EUR': 1.0, 'USD': 1.1}
    assert 'quoted in EUR' in usd.warning
    assert eur.base_currency == 'EUR'
    assert 'quoted in' not in eur.warning


@pytest.mark.asyncio
async def test_invalid_currency_code_raises(engine, pipeline):
    with pytest.raises(InvalidCurrencyError):
        await engine.resolve('DOLLAR')

    pipeline.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_offline_serves_stale_cache_without_network(engine, pipeline, clock):
    await engine.resolve('USD')
    clock.advance(minutes=6)
    engine.set_online(False)
    pipeline.fetch.reset_mock()

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.OFFLINE_CACHE
    assert result.warning.startswith('Offline')
    pipeline.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_offline_still_serves_fresh_cache(engine, pipeline):
    await engine.resolve('USD')
    engine.set_online(False)

    result = await engine.resolve('USD')

    assert result.provenance == Provenance.CACHE
    assert engine.pending_bases == []


@pytest.mark.asyncio
async def test_offline_without_cache_serves_static_table(engine, pipeline):
    engine.set_online(False)

    result = await engine.resolve('GBP')

    assert result.provenance == Provenance.STATIC_FALLBACK
    assert result.base_currency == 'GBP'
    pipeline.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_offline_requests_are_queued_once_each(engine):
    engine.set_online(False)

    await engine.resolve('USD')
    await engine.resolve('EUR')
    await engine.resolve('USD')

    assert engine.pending_bases == ['USD', 'EUR']


@pytest.mark.asyncio
async def test_replay_pending_refetches_in_arrival_order(engine, pipeline):
    engine.set_online(False)
    await engine.resolve('EUR')
    await engine.resolve('USD')
    engine.set_online(True)

    results = await engine.replay_pending()

    assert [r.base_currency for r in results] == ['EUR', 'USD']
    assert all(r.provenance == Provenance.NETWORK for r in results)
    assert pipeline.fetch.await_args_list == [call('EUR'), call('USD')]
    assert engine.pending_bases == []


@pytest.mark.asyncio
async def test_replay_pending_does_nothing_while_offline(engine, pipeline):
    engine.set_online(False)
    await engine.resolve('EUR')

    assert await engine.replay_pending() == []
    assert engine.pending_bases == ['EUR']


@pytest.mark.asyncio
async def test_clear_cache_and_stats(engine):
    await engine.resolve('USD')
    await engine.cache.aclose()
    assert (await engine.cache_stats()).entry_count == 1

    await engine.clear_cache()

    assert (await engine.cache_stats()).entry_count == 0


@pytest.mark.asyncio
async def test_close_releases_pipeline_and_store(engine, pipeline, memory_store):
    await engine.close()

    pipeline.close.assert_awaited_once()
    assert memory_store.closed
