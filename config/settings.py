from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
	# Application
	APP_NAME: str = 'Exchange Rate Resolver'
	DEBUG: bool = True
	DEFAULT_BASE_CURRENCY: str = 'USD'
	HOST: str = '0.0.0.0'
	PORT: int = 8000

	# Upstream rate providers
	PRIMARY_RATES_URL: str = 'https://api.exchangerate-api.com/v4/latest'
	FALLBACK_RATES_URL: str = 'https://open.er-api.com/v6/latest'

	# Durable cache store
	CACHE_BACKEND: Literal['redis', 'sql'] = 'sql'
	REDIS_URL: str = 'redis://localhost:6379'
	DATABASE_URL: str = 'sqlite+aiosqlite:///./exchange_rates.db'

	# Resolution policy
	CACHE_TTL_SECONDS: int = 300
	MIN_REQUEST_INTERVAL_SECONDS: float = 1.0
	REQUEST_TIMEOUT_SECONDS: float = 10.0
	MAX_RETRIES: int = 3
	RETRY_BACKOFF_SECONDS: float = 1.0
	DEBOUNCE_SECONDS: float = 0.3

	# Logging
	LOG_DIRECTORY: str = 'logs'
	LOG_LEVEL: str = 'INFO'

	model_config = SettingsConfigDict(env_file='.env', case_sensitive=False, extra='ignore')


@lru_cache
def get_settings() -> Settings:
	return Settings()
