"""
Observer Pattern Implementation for live-data notifications

Transports, the reconnection supervisor and the live data service all fan
events out to registered listeners. Notification is synchronous so that
listeners see events in the order they were produced.
"""

import logging
from typing import Any, Callable, Generic, List, TypeVar

L = TypeVar("L", bound=Callable[..., Any])


class ListenerSubject(Generic[L]):
    """Subject that notifies plain-callable listeners."""

    def __init__(self, name: str):
        self._name = name
        self._listeners: List[L] = []
        self._logger = logging.getLogger(f"{self.__class__.__name__}.{name}")

    def subscribe(self, listener: L) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        if listener not in self._listeners:
            self._listeners.append(listener)
            self._logger.debug(f"Subscribed listener: {_listener_id(listener)}")
        else:
            self._logger.warning(f"Listener already subscribed: {_listener_id(listener)}")
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: L) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
            self._logger.debug(f"Unsubscribed listener: {_listener_id(listener)}")

    def notify(self, *args: Any, **kwargs: Any) -> None:
        """Call every listener in registration order; failures are logged, not raised."""
        for listener in list(self._listeners):
            try:
                listener(*args, **kwargs)
            except Exception as e:
                self._logger.error(f"Error notifying listener {_listener_id(listener)}: {e}", exc_info=True)


def _listener_id(listener: Callable[..., Any]) -> str:
    return getattr(listener, "__qualname__", None) or repr(listener)
