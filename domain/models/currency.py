import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple

from domain.exceptions.currency import InvalidCurrencyError

# 1 unit of the base currency = rate units of the keyed currency
RateTable = dict[str, float]


def normalize_currency_code(code: str) -> str:
    """Upper-case and validate a 3-letter currency code."""
    if not isinstance(code, str):
        raise InvalidCurrencyError(f'Currency code must be a string, got {type(code).__name__}')

    normalized = code.strip().upper()
    if len(normalized) != 3 or not normalized.isascii() or not normalized.isalpha():
        raise InvalidCurrencyError(f'Invalid currency code: {code!r}')
    return normalized


def clean_rate_table(raw_rates: dict) -> tuple[RateTable, list[str]]:
    """Keep entries with a 3-letter code and a finite positive number. Returns (table, skipped codes)."""
    table: RateTable = {}
    skipped: list[str] = []
    for code, value in raw_rates.items():
        if not isinstance(code, str) or len(code) != 3 or not code.isalpha():
            skipped.append(repr(code))
            continue
        if isinstance(value, bool) or not isinstance(value, int | float):
            skipped.append(code)
            continue
        rate = float(value)
        if not math.isfinite(rate) or rate <= 0:
            skipped.append(code)
            continue
        table[code.upper()] = rate
    return table, skipped


class Provenance(str, Enum):
    NETWORK = 'network'
    CACHE = 'cache'
    OFFLINE_CACHE = 'offline_cache'
    STATIC_FALLBACK = 'static_fallback'
    ERROR_CACHE_FALLBACK = 'error_cache_fallback'
    ERROR_STATIC_FALLBACK = 'error_static_fallback'


@dataclass(frozen=True)
class CacheEntry:
    base_currency: str
    rates: RateTable
    inserted_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.inserted_at


@dataclass(frozen=True)
class CacheStats:
    entry_count: int
    total_size_bytes: int
    oldest_timestamp: datetime | None


@dataclass(frozen=True)
class ResolutionResult:
    base_currency: str
    rates: RateTable
    timestamp: datetime
    provenance: Provenance
    warning: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.provenance not in (Provenance.NETWORK, Provenance.CACHE)


@dataclass(frozen=True)
class EngineState:
    loading: bool = False
    error: str | None = None
    rates: RateTable = field(default_factory=dict)
    base_currency: str | None = None
    last_update: datetime | None = None
    is_online: bool = True
    provenance: Provenance | None = None


@dataclass(frozen=True)
class MetricsSnapshot:
    network_success_count: int
    cache_hit_count: int
    error_count: int
    cumulative_latency_ms: float
    missing_rate_count: int = 0
    last_error: str | None = None

    @property
    def average_latency_ms(self) -> float:
        if not self.network_success_count:
            return 0.0
        return self.cumulative_latency_ms / self.network_success_count

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.network_success_count + self.cache_hit_count
        if not lookups:
            return 0.0
        return self.cache_hit_count / lookups

    @property
    def cache_hit_rate_percent(self) -> float:
        return self.cache_hit_rate * 100


class ConversionResult(NamedTuple):
    converted_amount: float
    effective_rate: float
