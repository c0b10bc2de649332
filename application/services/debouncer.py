import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_QUIET_PERIOD_SECONDS = 0.3


class Debouncer(Generic[T]):
    """
    Collapses a burst of trigger() calls into one call of func, made
    delay seconds after the last trigger with that trigger's arguments.

    Superseded callers get None back. Once func has started it is not
    cancelled by later triggers.
    """

    def __init__(self, func: Callable[..., Awaitable[T]], delay: float = DEFAULT_QUIET_PERIOD_SECONDS):
        self.func = func
        self.delay = delay
        self._timer: asyncio.Task | None = None
        self._waiter: asyncio.Future | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def trigger(self, *args: Any, **kwargs: Any) -> T | None:
        self.cancel()

        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        timer = loop.create_task(self._fire_after_delay(waiter, args, kwargs))
        self._timer, self._waiter = timer, waiter
        self._running.add(timer)
        timer.add_done_callback(self._running.discard)

        return await waiter

    def cancel(self) -> None:
        """Drop the pending call, if it has not started yet."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            logger.debug('Superseded pending debounced call')
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)
        self._timer = None
        self._waiter = None

    async def aclose(self) -> None:
        self.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def _fire_after_delay(self, waiter: asyncio.Future, args: tuple, kwargs: dict) -> None:
        await asyncio.sleep(self.delay)

        # Past the quiet period: later triggers schedule a new call instead of cancelling this one
        if self._timer is asyncio.current_task():
            self._timer = None
            self._waiter = None

        try:
            result = await self.func(*args, **kwargs)
        except Exception as e:
            if not waiter.done():
                waiter.set_exception(e)
            else:
                logger.exception('Debounced call failed after its caller went away')
            return

        if not waiter.done():
            waiter.set_result(result)
