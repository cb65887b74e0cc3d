import logging
from dataclasses import replace
from typing import Optional

from agrolive.models.events import LiveState, SensorEvent


class LiveStateProjector:
    """Folds SensorEvents for one device into its latest-known-value snapshot."""

    def __init__(self, device_id: Optional[str] = None):
        self.log = logging.getLogger(self.__class__.__name__)
        self._state: Optional[LiveState] = LiveState.unknown(device_id) if device_id else None

    @property
    def state(self) -> Optional[LiveState]:
        return self._state

    def reset(self, device_id: str) -> LiveState:
        """Install the all-unknown snapshot for a newly selected device."""
        connected = self._state.is_connected if self._state else False
        self._state = LiveState.unknown(device_id, is_connected=connected)
        return self._state

    def clear(self) -> None:
        self._state = None

    def set_connected(self, connected: bool) -> Optional[LiveState]:
        if self._state is not None and self._state.is_connected != connected:
            self._state = replace(self._state, is_connected=connected)
        return self._state

    def apply(self, event: SensorEvent) -> Optional[LiveState]:
        """Merge one event; events for any other device leave the snapshot untouched."""
        state = self._state
        if state is None or event.device_id != state.device_id:
            self.log.debug(f"Ignoring {event.kind.value} for {event.device_id}")
            return state

        self._state = state.merged(event.readings(), event.timestamp)
        return self._state
