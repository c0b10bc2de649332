import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ConnectivityCallback = Callable[[bool], None]


class ConnectivityMonitor:
    """Online/offline flag supplied by the host; subscribers hear about transitions only."""

    def __init__(self, is_online: bool = True):
        self._is_online = is_online
        self._callbacks: list[ConnectivityCallback] = []

    @property
    def is_online(self) -> bool:
        return self._is_online

    def subscribe(self, callback: ConnectivityCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def set_online(self, is_online: bool) -> bool:
        """Record the host's connectivity; returns True when this was a transition."""
        if is_online == self._is_online:
            return False

        self._is_online = is_online
        logger.info(f'Connectivity changed: {"online" if is_online else "offline"}')
        for callback in list(self._callbacks):
            callback(is_online)
        return True
