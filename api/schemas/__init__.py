from .requests import ConnectivityRequest
from .responses import (
	CacheStatsResponse,
	ConversionResponse,
	MetricsResponse,
	PopularRateResponse,
	RatesResponse,
	StateResponse,
)

__all__ = [
	'CacheStatsResponse',
	'ConnectivityRequest',
	'ConversionResponse',
	'MetricsResponse',
	'PopularRateResponse',
	'RatesResponse',
	'StateResponse',
]
