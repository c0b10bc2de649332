# nosec B101


import pytest
import pytest_asyncio

from infrastructure.persistence.database import Database
from infrastructure.persistence.repositories.kv_store import SqlKeyValueStore


@pytest_asyncio.fixture
async def store():
    database = Database('sqlite+aiosqlite:///:memory:')
    await database.create_tables()
    store = SqlKeyValueStore(database)
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_get_missing_key_returns_none(store):
    assert await store.get('exchange_rates:USD') is None


@pytest.mark.asyncio
async def test_set_then_get(store):
    await store.set('exchange_rates:USD', '{"base": "USD"}')

    assert await store.get('exchange_rates:USD') == '{"base": "USD"}'


@pytest.mark.asyncio
async def test_set_overwrites_existing_value(store):
    await store.set('exchange_rates:USD', 'old')
    await store.set('exchange_rates:USD', 'new')

    assert await store.get('exchange_rates:USD') == 'new'
    assert await store.keys() == ['exchange_rates:USD']


@pytest.mark.asyncio
async def test_remove_deletes_and_tolerates_missing(store):
    await store.set('exchange_rates:USD', 'value')

    await store.remove('exchange_rates:USD')
    await store.remove('exchange_rates:USD')

    assert await store.get('exchange_rates:USD') is None


@pytest.mark.asyncio
async def test_keys_filters_by_literal_prefix(store):
    await store.set('exchange_rates:USD', 'a')
    await store.set('exchange_rates:EUR', 'b')
    await store.set('exchangeXrates:GBP', 'c')
    await store.set('settings:theme', 'd')

    assert await store.keys('exchange_rates:') == ['exchange_rates:EUR', 'exchange_rates:USD']
    assert len(await store.keys()) == 4


@pytest.mark.asyncio
async def test_health_check(store):
    assert await store.database.health_check() is True
