from .base import RateProvider
from .exchangerate_api import ExchangeRateAPIProvider
from .open_er_api import OpenERAPIProvider

__all__ = ['RateProvider', 'ExchangeRateAPIProvider', 'OpenERAPIProvider']
