import logging
from enum import Enum
from typing import Dict, List


class ConnectionState(Enum):
    IDLE          = "idle"
    CONNECTING    = "connecting"
    BACKOFF       = "backoff"
    CONNECTED     = "connected"
    DISCONNECTED  = "disconnected"
    DEGRADED      = "degraded"


class StateMachine:
    def __init__(self, initial: ConnectionState = ConnectionState.IDLE):
        self._state = initial
        self.log = logging.getLogger(self.__class__.__name__)
        self._trans: Dict[ConnectionState, List[ConnectionState]] = {
            ConnectionState.IDLE:         [ConnectionState.CONNECTING],
            ConnectionState.CONNECTING:   [ConnectionState.CONNECTED, ConnectionState.BACKOFF,
                                           ConnectionState.DEGRADED, ConnectionState.IDLE],
            ConnectionState.BACKOFF:      [ConnectionState.CONNECTING, ConnectionState.IDLE],
            ConnectionState.CONNECTED:    [ConnectionState.DISCONNECTED, ConnectionState.IDLE],
            ConnectionState.DISCONNECTED: [ConnectionState.CONNECTING, ConnectionState.IDLE],
            ConnectionState.DEGRADED:     [ConnectionState.CONNECTING, ConnectionState.IDLE],
        }

    @property
    def state(self) -> ConnectionState: return self._state

    def can(self, nxt: ConnectionState) -> bool: return nxt in self._trans[self._state]

    def transition(self, nxt: ConnectionState) -> bool:
        if self.can(nxt):
            self.log.debug("state transition: %s -> %s", self._state.name, nxt.name)
            self._state = nxt
            return True
        self.log.error("invalid state transition: %s -> %s", self._state.name, nxt.name)
        return False
