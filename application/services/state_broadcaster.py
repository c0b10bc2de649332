import dataclasses
import itertools
import logging
import threading
from collections.abc import Callable

from domain.models.currency import EngineState

logger = logging.getLogger(__name__)

StateCallback = Callable[[EngineState], None]


class Subscription:
    """Handle returned by subscribe(); call it (or .unsubscribe()) to stop receiving states."""

    def __init__(self, broadcaster: 'StateBroadcaster', subscription_id: int):
        self._broadcaster = broadcaster
        self.id = subscription_id

    @property
    def active(self) -> bool:
        return self._broadcaster._has_subscription(self.id)

    def unsubscribe(self) -> None:
        self._broadcaster._remove(self.id)

    def __call__(self) -> None:
        self.unsubscribe()


class StateBroadcaster:
    """
    Owns the single EngineState. set_state() swaps in a new immutable
    state and notifies every subscriber, in subscription order, outside
    the lock so callbacks may call back into the broadcaster.
    """

    def __init__(self, initial_state: EngineState | None = None):
        self._state = initial_state or EngineState()
        self._lock = threading.Lock()
        self._subscribers: dict[int, StateCallback] = {}
        self._ids = itertools.count(1)

    @property
    def state(self) -> EngineState:
        return self._state

    def subscribe(self, callback: StateCallback) -> Subscription:
        with self._lock:
            subscription_id = next(self._ids)
            self._subscribers[subscription_id] = callback
        return Subscription(self, subscription_id)

    def set_state(self, **changes) -> EngineState:
        with self._lock:
            self._state = dataclasses.replace(self._state, **changes)
            snapshot = self._state
            callbacks = list(self._subscribers.values())

        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception:
                logger.exception(f'State subscriber {callback!r} failed')
        return snapshot

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _has_subscription(self, subscription_id: int) -> bool:
        return subscription_id in self._subscribers

    def _remove(self, subscription_id: int) -> None:
        with self._lock:
            self._subscribers.pop(subscription_id, None)
