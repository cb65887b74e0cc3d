"""
Reconnection supervisor

Owns the one transport of a LiveDataService: connects with bounded
exponential backoff, falls back to DEGRADED, and re-arms subscriptions on
every entry into CONNECTED before any other listener hears about it.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional

from agrolive.core.exceptions import BrokerConnectionError, ConfigurationError, ConnectionReason
from agrolive.core.patterns import ConnectionState, ListenerSubject, StateMachine
from agrolive.protocols.base_transport import BaseTransport, Credentials, Frame

Hook = Callable[[], None]
StateListener = Callable[[ConnectionState], None]
Sleep = Callable[[float], Awaitable[None]]

STATUS_FOR_STATE = {
    ConnectionState.IDLE:         "idle",
    ConnectionState.CONNECTING:   "connecting",
    ConnectionState.BACKOFF:      "connecting",
    ConnectionState.DISCONNECTED: "connecting",
    ConnectionState.CONNECTED:    "connected",
    ConnectionState.DEGRADED:     "offline",
}


class ReconnectConfig:
    """Backoff policy: ``min(base_delay * 2**(attempt-1), max_delay)`` plus optional jitter."""

    def __init__(self,
                 base_delay: float = 1.0,
                 max_delay: float = 30.0,
                 max_attempts: int = 5,
                 jitter: float = 0.0):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.jitter = jitter

        if self.base_delay <= 0:
            raise ConfigurationError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ConfigurationError("max_delay must not be smaller than base_delay")
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if not 0.0 <= self.jitter <= 1.0:
            raise ConfigurationError("jitter must be a fraction between 0 and 1")

    def delay_for(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += delay * self.jitter * rng()
        return delay


class ReconnectionSupervisor:
    def __init__(self,
                 transport: BaseTransport,
                 config: Optional[ReconnectConfig] = None,
                 sleep: Sleep = asyncio.sleep):
        self.transport = transport
        self.config = config or ReconnectConfig()
        self.log = logging.getLogger(self.__class__.__name__)

        self._machine = StateMachine(ConnectionState.IDLE)
        self._sleep = sleep
        self._credentials = Credentials()
        self._task: Optional[asyncio.Task] = None
        self._rearm_hooks: List[Hook] = []
        self._link_lost_hooks: List[Hook] = []
        self.state_changes: ListenerSubject = ListenerSubject("connection_state")

        self.attempts = 0
        self.last_error: Optional[BrokerConnectionError] = None

        self.transport.closed.subscribe(self._on_transport_closed)

    # --------------------------------------------------------------------- #
    #  Introspection
    # --------------------------------------------------------------------- #
    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def status(self) -> str:
        return STATUS_FOR_STATE[self.state]

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    # --------------------------------------------------------------------- #
    #  Hooks
    # --------------------------------------------------------------------- #
    def add_rearm_hook(self, hook: Hook) -> None:
        """Runs synchronously on every entry into CONNECTED, before state listeners."""
        self._rearm_hooks.append(hook)

    def add_link_lost_hook(self, hook: Hook) -> None:
        """Runs when a CONNECTED link goes away, before state listeners."""
        self._link_lost_hooks.append(hook)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        return self.state_changes.subscribe(listener)

    # --------------------------------------------------------------------- #
    #  Lifecycle
    # --------------------------------------------------------------------- #
    async def start(self, credentials: Optional[Credentials] = None) -> ConnectionState:
        """Connect, retrying with backoff. Returns CONNECTED or DEGRADED."""
        if credentials is not None:
            self._credentials = credentials
        if self._task is not None and not self._task.done():
            self.log.debug("start() while a connect loop is running; joining it")
        elif self.state in (ConnectionState.IDLE, ConnectionState.DISCONNECTED):
            self.attempts = 0
            self._task = asyncio.create_task(self._connect_loop())
        else:
            self.log.info(f"start() ignored in state {self.state.name}")
            return self.state
        await self.join()
        return self.state

    async def retry(self) -> ConnectionState:
        """Leave DEGRADED and run a fresh connect loop."""
        if self.state is not ConnectionState.DEGRADED:
            self.log.info(f"retry() ignored in state {self.state.name}")
            return self.state
        self.attempts = 0
        self._task = asyncio.create_task(self._connect_loop())
        await self.join()
        return self.state

    async def stop(self) -> None:
        """Close the transport for good; no reconnect follows."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        was_connected = self.is_connected()
        if self.state is not ConnectionState.IDLE:
            self._enter(ConnectionState.IDLE, link_lost=was_connected)
        await self.transport.close()

    async def join(self) -> None:
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()

    def send(self, frame: Frame) -> bool:
        if not self.is_connected():
            self.log.debug(f"Not connected, {frame.type.value} for '{frame.topic}' not sent")
            return False
        return self.transport.send(frame)

    # --------------------------------------------------------------------- #
    #  Internals
    # --------------------------------------------------------------------- #
    async def _connect_loop(self) -> None:
        while True:
            if not self._enter(ConnectionState.CONNECTING):
                return
            try:
                await self.transport.connect(self._credentials)
            except ConfigurationError:
                self._enter(ConnectionState.DEGRADED)
                raise
            except BrokerConnectionError as e:
                self.attempts += 1
                self.last_error = e
                if e.reason is ConnectionReason.AUTH:
                    self.log.error(f"Authentication rejected, not retrying: {e}")
                    self._enter(ConnectionState.DEGRADED)
                    return
                if self.attempts >= self.config.max_attempts:
                    self.log.error(f"Giving up after {self.attempts} attempts: {e}")
                    self._enter(ConnectionState.DEGRADED)
                    return
                delay = self.config.delay_for(self.attempts)
                self.log.warning(f"Connection attempt {self.attempts} failed: {e}. Retrying in {delay:.2f}s...")
                self._enter(ConnectionState.BACKOFF)
                await self._sleep(delay)
                continue

            self.attempts = 0
            self.last_error = None
            self._enter(ConnectionState.CONNECTED)
            return

    async def _reconnect_after_drop(self) -> None:
        await self._sleep(self.config.delay_for(1))
        await self._connect_loop()

    def _on_transport_closed(self, normal: bool) -> None:
        if self.state is not ConnectionState.CONNECTED:
            return
        if normal:
            self.log.info("Connection closed normally; not reconnecting")
            self._enter(ConnectionState.IDLE, link_lost=True)
            return
        self.log.warning("Connection lost; scheduling reconnect")
        self._enter(ConnectionState.DISCONNECTED, link_lost=True)
        self.attempts = 0
        self._task = asyncio.create_task(self._reconnect_after_drop())

    def _enter(self, state: ConnectionState, link_lost: bool = False) -> bool:
        if not self._machine.transition(state):
            return False
        if link_lost:
            self._run_hooks(self._link_lost_hooks)
        if state is ConnectionState.CONNECTED:
            self._run_hooks(self._rearm_hooks)
        self.state_changes.notify(state)
        return True

    def _run_hooks(self, hooks: List[Hook]) -> None:
        for hook in list(hooks):
            try:
                hook()
            except Exception as e:
                self.log.error(f"Connection hook {hook!r} failed: {e}", exc_info=True)
