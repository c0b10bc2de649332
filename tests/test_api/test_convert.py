from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_rate_converter
from api.main import app
from domain.exceptions.currency import InvalidCurrencyError
from domain.models.currency import ConversionResult


@pytest.fixture
def mock_converter():
    converter = MagicMock()
    converter.convert = AsyncMock(return_value=ConversionResult(1085.5, 1.0855))
    return converter


@pytest.fixture
def client(mock_converter):
    app.dependency_overrides[get_rate_converter] = lambda: mock_converter
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def test_convert_success(client, mock_converter):
    response = client.get('/api/convert/usd/eur/1000')

    assert response.status_code == 200
    data = response.json()
    assert data['from_currency'] == 'USD'
    assert data['to_currency'] == 'EUR'
    assert data['amount'] == 1000
    assert data['converted_amount'] == 1085.5
    assert data['exchange_rate'] == 1.0855
    assert data['formatted_amount'] == '1,085.50'
    mock_converter.convert.assert_awaited_once_with(1000.0, 'USD', 'EUR')


def test_convert_decimal_amount(client, mock_converter):
    response = client.get('/api/convert/GBP/JPY/12.5')

    assert response.status_code == 200
    mock_converter.convert.assert_awaited_once_with(12.5, 'GBP', 'JPY')


def test_convert_zero_amount(client, mock_converter):
    mock_converter.convert.return_value = ConversionResult(0.0, 0.0)

    response = client.get('/api/convert/USD/EUR/0')

    assert response.status_code == 200
    assert response.json()['formatted_amount'] == '0.00'


def test_convert_non_numeric_amount_is_422(client):
    response = client.get('/api/convert/USD/EUR/lots')

    assert response.status_code == 422


def test_convert_invalid_currency_is_400(client, mock_converter):
    mock_converter.convert.side_effect = InvalidCurrencyError("Invalid currency code: 'EURO'")

    response = client.get('/api/convert/USD/EURO/10')

    assert response.status_code == 400
