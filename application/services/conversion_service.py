import math
from collections.abc import Callable, Mapping

from domain.models.currency import ConversionResult

DEFAULT_BASE_CURRENCY = 'USD'

POPULAR_PAIRS = (
    ('USD', 'EUR', 'usdeur'),
    ('USD', 'GBP', 'usdgbp'),
    ('USD', 'JPY', 'usdjpy'),
    ('EUR', 'GBP', 'eurgbp'),
    ('GBP', 'USD', 'gbpusd'),
)


def convert(
    amount: float,
    from_currency: str,
    to_currency: str,
    rates: Mapping[str, float],
    base: str = DEFAULT_BASE_CURRENCY,
    on_missing_rate: Callable[[str], None] | None = None,
) -> ConversionResult:
    """
    Convert amount using a table quoted against base, triangulating
    through base when neither side is the base currency.

    A currency missing from the table converts at 1.0; on_missing_rate
    is told which code was missing.
    """
    if amount <= 0:
        return ConversionResult(0.0, 0.0)
    if from_currency == to_currency:
        return ConversionResult(float(amount), 1.0)

    def rate_for(code: str) -> float:
        if code == base:
            return rates.get(code, 1.0)
        rate = rates.get(code)
        if rate is None:
            if on_missing_rate:
                on_missing_rate(code)
            return 1.0
        return rate

    if from_currency == base:
        effective_rate = rate_for(to_currency)
    elif to_currency == base:
        effective_rate = 1 / rate_for(from_currency)
    else:
        effective_rate = rate_for(to_currency) / rate_for(from_currency)

    return ConversionResult(amount * effective_rate, effective_rate)


def popular_rates(rates: Mapping[str, float], base: str = DEFAULT_BASE_CURRENCY) -> list[dict]:
    """Effective rates for the fixed set of popular pairs. A missing direct quote shows as 0."""
    results = []
    for from_currency, to_currency, pair_id in POPULAR_PAIRS:
        if from_currency == base:
            rate = rates.get(to_currency, 0.0)
        else:
            _, rate = convert(1.0, from_currency, to_currency, rates, base=base)
        results.append({
            'id': pair_id,
            'from': from_currency,
            'to': to_currency,
            'rate': rate,
            'formatted': format_amount(rate),
        })
    return results


def format_amount(value) -> str:
    """Thousands separators, between 2 and 6 fraction digits."""
    if isinstance(value, bool) or not isinstance(value, int | float) or not math.isfinite(value):
        return '0.00'
    text = f'{value:,.6f}'
    whole, _, fraction = text.partition('.')
    fraction = fraction.rstrip('0').ljust(2, '0')
    return f'{whole}.{fraction}'
