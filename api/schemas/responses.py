from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from application.services.conversion_service import format_amount
from domain.models.currency import (
	CacheStats,
	ConversionResult,
	EngineState,
	MetricsSnapshot,
	Provenance,
	ResolutionResult,
)


class RatesResponse(BaseModel):
	base_currency: str = Field(..., description='Currency the rates are quoted against')
	rates: dict[str, float] = Field(..., description='Units of each currency per 1 unit of the base')
	timestamp: datetime = Field(..., description='When the rates were fetched')
	provenance: Provenance = Field(..., description='Where the rates came from')
	warning: str | None = Field(None, description='Set whenever the rates are not live')
	is_fallback: bool = False

	model_config = ConfigDict(
		json_schema_extra={
			'example': {
				'base_currency': 'USD',
				'rates': {'EUR': 0.85, 'GBP': 0.73},
				'timestamp': '2025-09-27T10:30:00Z',
				'provenance': 'network',
				'warning': None,
				'is_fallback': False,
			}
		}
	)

	@classmethod
	def from_result(cls, result: ResolutionResult) -> 'RatesResponse':
		return cls(
			base_currency=result.base_currency,
			rates=result.rates,
			timestamp=result.timestamp,
			provenance=result.provenance,
			warning=result.warning,
			is_fallback=result.is_fallback,
		)


class ConversionResponse(BaseModel):
	from_currency: str = Field(..., description='Source currency code')
	to_currency: str = Field(..., description='Target currency code')
	amount: float = Field(..., description='Original amount requested')
	converted_amount: float = Field(..., description='Converted amount')
	exchange_rate: float = Field(..., description='Effective rate used for conversion')
	formatted_amount: str = Field(..., description='Converted amount for display')

	model_config = ConfigDict(
		json_schema_extra={
			'example': {
				'from_currency': 'USD',
				'to_currency': 'EUR',
				'amount': 100.0,
				'converted_amount': 85.0,
				'exchange_rate': 0.85,
				'formatted_amount': '85.00',
			}
		}
	)

	@classmethod
	def from_result(
		cls, amount: float, from_currency: str, to_currency: str, result: ConversionResult
	) -> 'ConversionResponse':
		return cls(
			from_currency=from_currency,
			to_currency=to_currency,
			amount=amount,
			converted_amount=result.converted_amount,
			exchange_rate=result.effective_rate,
			formatted_amount=format_amount(result.converted_amount),
		)


class PopularRateResponse(BaseModel):
	id: str
	from_currency: str = Field(..., alias='from')
	to_currency: str = Field(..., alias='to')
	rate: float
	formatted: str

	model_config = ConfigDict(populate_by_name=True)


class StateResponse(BaseModel):
	loading: bool
	error: str | None
	rates: dict[str, float]
	base_currency: str | None
	last_update: datetime | None
	is_online: bool
	provenance: Provenance | None

	@classmethod
	def from_state(cls, state: EngineState) -> 'StateResponse':
		return cls(
			loading=state.loading,
			error=state.error,
			rates=state.rates,
			base_currency=state.base_currency,
			last_update=state.last_update,
			is_online=state.is_online,
			provenance=state.provenance,
		)


class MetricsResponse(BaseModel):
	network_success_count: int
	cache_hit_count: int
	error_count: int
	missing_rate_count: int
	average_latency_ms: float
	cache_hit_rate: float = Field(..., description='Cache hits / (cache hits + network successes)')
	last_error: str | None

	@classmethod
	def from_snapshot(cls, snapshot: MetricsSnapshot) -> 'MetricsResponse':
		return cls(
			network_success_count=snapshot.network_success_count,
			cache_hit_count=snapshot.cache_hit_count,
			error_count=snapshot.error_count,
			missing_rate_count=snapshot.missing_rate_count,
			average_latency_ms=snapshot.average_latency_ms,
			cache_hit_rate=snapshot.cache_hit_rate,
			last_error=snapshot.last_error,
		)


class CacheStatsResponse(BaseModel):
	entry_count: int
	total_size_bytes: int
	oldest_timestamp: datetime | None

	@classmethod
	def from_stats(cls, stats: CacheStats) -> 'CacheStatsResponse':
		return cls(
			entry_count=stats.entry_count,
			total_size_bytes=stats.total_size_bytes,
			oldest_timestamp=stats.oldest_timestamp,
		)
