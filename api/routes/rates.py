import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from api.dependencies import get_rate_converter
from api.schemas import (
	CacheStatsResponse,
	ConnectivityRequest,
	ConversionResponse,
	MetricsResponse,
	PopularRateResponse,
	RatesResponse,
	StateResponse,
)
from application.services import RateConverter
from domain.models.currency import EngineState

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api', tags=['rates'])


@router.get(
	'/rates/popular',
	response_model=list[PopularRateResponse],
	status_code=status.HTTP_200_OK,
	summary='Effective rates for popular currency pairs',
)
async def get_popular_rates(
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> list[PopularRateResponse]:
	return [PopularRateResponse(**rate) for rate in converter.popular_rates()]


@router.get(
	'/rates/{base_currency}',
	response_model=RatesResponse,
	status_code=status.HTTP_200_OK,
	summary='Resolve the rate table for a base currency',
)
async def get_rates(
	base_currency: str,
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
	force_refresh: Annotated[bool, Query(description='Skip the fresh-cache check')] = False,
) -> RatesResponse:
	result = await converter.load_rates(base_currency, force_refresh=force_refresh)
	return RatesResponse.from_result(result)


@router.get(
	'/convert/{from_currency}/{to_currency}/{amount}',
	response_model=ConversionResponse,
	status_code=status.HTTP_200_OK,
	summary='Convert currency amount',
)
async def convert_currency(
	from_currency: str,
	to_currency: str,
	amount: float,
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> ConversionResponse:
	from_currency = from_currency.strip().upper()
	to_currency = to_currency.strip().upper()
	result = await converter.convert(amount, from_currency, to_currency)
	return ConversionResponse.from_result(amount, from_currency, to_currency, result)


@router.get('/state', response_model=StateResponse, summary='Current engine state')
async def get_state(
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> StateResponse:
	return StateResponse.from_state(converter.get_state())


@router.get('/metrics', response_model=MetricsResponse, summary='Resolution metrics')
async def get_metrics(
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> MetricsResponse:
	return MetricsResponse.from_snapshot(converter.get_metrics())


@router.get('/cache/stats', response_model=CacheStatsResponse, summary='Durable cache statistics')
async def get_cache_stats(
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> CacheStatsResponse:
	return CacheStatsResponse.from_stats(await converter.get_cache_stats())


@router.delete('/cache', response_model=RatesResponse, summary='Clear the cache and reload the default base')
async def clear_cache(
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> RatesResponse:
	return RatesResponse.from_result(await converter.clear_cache())


@router.put('/connectivity', response_model=StateResponse, summary='Report host connectivity')
async def set_connectivity(
	request: ConnectivityRequest,
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
) -> StateResponse:
	await converter.set_online(request.online)
	return StateResponse.from_state(converter.get_state())


async def _forward_states(websocket: WebSocket, queue: asyncio.Queue[EngineState]) -> None:
	while True:
		state = await queue.get()
		await websocket.send_json(StateResponse.from_state(state).model_dump(mode='json'))


@router.websocket('/ws/state')
async def state_stream(
	websocket: WebSocket,
	converter: Annotated[RateConverter, Depends(get_rate_converter)],
):
	"""Pushes the current engine state on connect, then every change. Client messages are ignored."""
	await websocket.accept()
	queue: asyncio.Queue[EngineState] = asyncio.Queue()
	queue.put_nowait(converter.get_state())
	loop = asyncio.get_running_loop()
	# set_state may run on another thread
	subscription = converter.subscribe(lambda state: loop.call_soon_threadsafe(queue.put_nowait, state))
	forwarder = asyncio.create_task(_forward_states(websocket, queue))
	logger.info('State stream client connected')

	try:
		while True:
			await websocket.receive_text()
	except WebSocketDisconnect:
		logger.info('State stream client disconnected')
	finally:
		subscription.unsubscribe()
		forwarder.cancel()
		await asyncio.gather(forwarder, return_exceptions=True)
