from types import MappingProxyType

FALLBACK_BASE_CURRENCY = 'USD'

# Approximate USD rates (June 2025). Last resort only, never refreshed at runtime.
STATIC_FALLBACK_RATES = MappingProxyType({
    'EUR': 0.876, 'GBP': 0.738, 'JPY': 156.2, 'AUD': 1.542,
    'CAD': 1.384, 'CHF': 0.891, 'CNY': 7.245, 'INR': 83.12,
    'KRW': 1398.5, 'MXN': 18.75, 'SGD': 1.348, 'HKD': 7.785,
    'NOK': 10.85, 'SEK': 10.42, 'DKK': 6.53, 'PLN': 4.12,
    'CZK': 23.15, 'HUF': 385.2, 'RUB': 89.5, 'BRL': 5.48,
    'ZAR': 18.25, 'TRY': 32.85, 'ILS': 3.68, 'AED': 3.673,
    'SAR': 3.751, 'THB': 36.45, 'MYR': 4.685, 'IDR': 16125.0,
    'PHP': 58.25, 'VND': 24850.0, 'EGP': 49.15, 'NGN': 1545.0,
    'KES': 129.5, 'GHS': 15.85, 'MAD': 9.82,
})


def static_fallback_table(base_currency: str = FALLBACK_BASE_CURRENCY) -> dict[str, float]:
    """
    Fresh copy of the fallback table expressed relative to base_currency.

    Bases the table does not know get the USD table unchanged.
    """
    table = {FALLBACK_BASE_CURRENCY: 1.0, **STATIC_FALLBACK_RATES}
    base_rate = table.get(base_currency)
    if base_currency == FALLBACK_BASE_CURRENCY or base_rate is None:
        return table
    return {code: rate / base_rate for code, rate in table.items()}
