"""Live data facade: connection, subscription, normalization, projection and commands wired together."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from agrolive.core.patterns import ConnectionState, ListenerSubject
from agrolive.mapping.normalizer import MessageNormalizer
from agrolive.models.events import LiveState, ReadingKind, SensorEvent
from agrolive.models.topics import TopicScheme
from agrolive.protocols.base_transport import BaseTransport, Credentials
from agrolive.services.command_publisher import CommandPublisher, CommandResult
from agrolive.services.live_state import LiveStateProjector
from agrolive.services.subscription_registry import SubscriptionRegistry
from agrolive.services.supervisor import ReconnectConfig, ReconnectionSupervisor, Sleep

LiveUpdateListener = Callable[[Optional[LiveState]], None]
ConnectionListener = Callable[[bool], None]


class LiveDataService:
    def __init__(self,
                 transport: BaseTransport,
                 scheme: Optional[TopicScheme] = None,
                 reconnect_config: Optional[ReconnectConfig] = None,
                 command_qos: int = 1,
                 subscribe_qos: int = 0,
                 sleep: Sleep = asyncio.sleep):
        self.log = logging.getLogger(self.__class__.__name__)
        self.scheme = scheme or TopicScheme()
        self.transport = transport

        self.supervisor = ReconnectionSupervisor(transport, reconnect_config, sleep=sleep)
        self.normalizer = MessageNormalizer(self.scheme)
        self.registry = SubscriptionRegistry(self.supervisor, self.scheme, subscribe_qos)
        self.projector = LiveStateProjector()
        self.commands = CommandPublisher(self.supervisor, self.scheme, command_qos)

        self._live_updates: ListenerSubject = ListenerSubject("live_update")
        self._connection_changes: ListenerSubject = ListenerSubject("connection_change")
        self._events_delivered = 0
        self._link_up = False

        # registry re-subscription must precede every other CONNECTED listener
        self.supervisor.add_rearm_hook(self.registry.rearm)
        self.supervisor.add_link_lost_hook(self.registry.mark_disconnected)
        self.supervisor.add_listener(self._on_connection_state)
        transport.frames.subscribe(self._on_frame)

    # --------------------------------------------------------------------- #
    #  Lifecycle
    # --------------------------------------------------------------------- #
    async def start(self, credentials: Optional[Credentials] = None) -> ConnectionState:
        self.log.info(f"Starting live data service ({self.transport.config.transport_type.value})")
        return await self.supervisor.start(credentials)

    async def stop(self) -> None:
        await self.supervisor.stop()
        self.log.info("Live data service stopped")

    async def retry(self) -> ConnectionState:
        return await self.supervisor.retry()

    # --------------------------------------------------------------------- #
    #  Subscriptions
    # --------------------------------------------------------------------- #
    def subscribe_device(self, device_id: str) -> None:
        if self.registry.active_device == device_id:
            self.registry.subscribe_device(device_id, self._on_event)
            return

        # no value of the previous device may leak into the new one
        self.projector.reset(device_id)
        self.projector.set_connected(self.supervisor.is_connected())
        self.registry.subscribe_device(device_id, self._on_event)
        self._live_updates.notify(self.projector.state)

    def unsubscribe_device(self, device_id: str) -> None:
        if self.registry.unsubscribe_device(device_id):
            self.projector.clear()
            self._live_updates.notify(None)

    # --------------------------------------------------------------------- #
    #  Commands
    # --------------------------------------------------------------------- #
    async def send_command(self, device_id: str, kind: ReadingKind, value: Any) -> CommandResult:
        return await self.commands.send_command(device_id, kind, value)

    async def set_pump(self, device_id: str, power: Any, mode: Optional[str] = None) -> CommandResult:
        return await self.commands.set_pump(device_id, power, mode)

    # --------------------------------------------------------------------- #
    #  Listeners and introspection
    # --------------------------------------------------------------------- #
    def on_live_update(self, listener: LiveUpdateListener) -> Callable[[], None]:
        """Called with each new snapshot, and with None once the device is unsubscribed."""
        return self._live_updates.subscribe(listener)

    def on_connection_change(self, listener: ConnectionListener) -> Callable[[], None]:
        """Called with True when the link comes up and False when it goes down.

        Internal retry states (backoff, reconnecting) do not notify; read
        ``connection_status`` for those.
        """
        return self._connection_changes.subscribe(listener)

    @property
    def live_state(self) -> Optional[LiveState]:
        return self.projector.state

    @property
    def is_connected(self) -> bool:
        return self.supervisor.is_connected()

    @property
    def connection_status(self) -> str:
        return self.supervisor.status

    def stats(self) -> Dict[str, Any]:
        return {
            "state": self.supervisor.state.value,
            "status": self.supervisor.status,
            "attempts": self.supervisor.attempts,
            "active_device": self.registry.active_device,
            "subscribed_topics": len(self.registry.topics),
            "events_delivered": self._events_delivered,
            "frames_dropped": self.normalizer.dropped,
            "commands_sent": self.commands.sent,
            "transport": self.transport.get_stats(),
        }

    # --------------------------------------------------------------------- #
    #  Internals
    # --------------------------------------------------------------------- #
    def _on_frame(self, raw: Any) -> None:
        events = self.normalizer.normalize_all(raw)
        if events:
            self.registry.dispatch(events)

    def _on_event(self, event: SensorEvent) -> None:
        before = self.projector.state
        state = self.projector.apply(event)
        if state is not None and state is not before:
            self._events_delivered += 1
            self._live_updates.notify(state)

    def _on_connection_state(self, state: ConnectionState) -> None:
        before = self.projector.state
        connected = state is ConnectionState.CONNECTED
        after = self.projector.set_connected(connected)
        if connected != self._link_up:
            self._link_up = connected
            self._connection_changes.notify(connected)
        if after is not None and after is not before:
            self._live_updates.notify(after)
