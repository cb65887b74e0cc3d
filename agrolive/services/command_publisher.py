"""Actuator commands over the live connection. Never queued, never retried."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from agrolive.core.exceptions import CommandError, CommandReason, ConfigurationError
from agrolive.mapping.transformations import coerce_power
from agrolive.models.events import MODE_AUTO, MODE_MANUAL, PUMP_ON, ReadingKind, local_now
from agrolive.models.topics import TopicScheme
from agrolive.protocols.base_transport import Frame, FrameType
from agrolive.services.subscription_registry import Connection

PUMP_MODES = (MODE_AUTO, MODE_MANUAL)


@dataclass(frozen=True)
class CommandResult:
    device_id: str
    topic: str
    payload: Dict[str, str]
    sent_at: str = field(default_factory=local_now)


class CommandPublisher:
    def __init__(self, connection: Connection, scheme: Optional[TopicScheme] = None, qos: int = 1):
        if qos not in (0, 1, 2):
            raise ConfigurationError(f"qos must be 0, 1 or 2, got {qos}")
        self.connection = connection
        self.scheme = scheme or TopicScheme()
        self.qos = qos
        self.log = logging.getLogger(self.__class__.__name__)
        self.sent = 0

    async def send_command(self, device_id: str, kind: Union[ReadingKind, str], value: Any) -> CommandResult:
        """
        Publish one actuator change to the device's state topic.

        pumpStatus accepts ON/OFF (any case, booleans, 1/0) and goes out as
        ``{"power": "on"|"off"}``; pumpMode accepts auto/manual and goes out
        as ``{"mode": ...}``.

        Raises:
            CommandError: ``rejected`` for an unknown kind or value,
                ``offline`` when the connection is not up.
        """
        try:
            kind = ReadingKind(kind)
        except ValueError:
            raise CommandError(CommandReason.REJECTED, f"not an actuator kind: {kind!r}") from None

        if kind is ReadingKind.PUMP_STATUS:
            payload = {"power": self._power(value)}
        elif kind is ReadingKind.PUMP_MODE:
            payload = {"mode": self._mode(value)}
        else:
            raise CommandError(CommandReason.REJECTED, f"not an actuator kind: {kind.value}")

        return self._publish(device_id, payload)

    async def set_pump(self, device_id: str, power: Any, mode: Optional[str] = None) -> CommandResult:
        """Combined ``{power, mode?}`` command in a single frame."""
        payload = {"power": self._power(power)}
        if mode is not None:
            payload["mode"] = self._mode(mode)
        return self._publish(device_id, payload)

    # ------------------------------------------------------------------ #
    def _power(self, value: Any) -> str:
        power = coerce_power(value)
        if power is None:
            raise CommandError(CommandReason.REJECTED, f"invalid pump power: {value!r}")
        return "on" if power == PUMP_ON else "off"

    def _mode(self, value: Any) -> str:
        mode = value.strip().lower() if isinstance(value, str) else None
        if mode not in PUMP_MODES:
            raise CommandError(CommandReason.REJECTED, f"invalid pump mode: {value!r}")
        return mode

    def _publish(self, device_id: str, payload: Dict[str, str]) -> CommandResult:
        if not isinstance(device_id, str) or not device_id or "/" in device_id:
            raise CommandError(CommandReason.REJECTED, f"invalid device id: {device_id!r}")

        if not self.connection.is_connected():
            raise CommandError(CommandReason.OFFLINE, f"cannot command {device_id} while disconnected")

        topic = self.scheme.state_topic(device_id)
        frame = Frame(FrameType.PUBLISH, topic, json.dumps(payload), self.qos)
        if not self.connection.send(frame):
            raise CommandError(CommandReason.OFFLINE, f"command frame for {device_id} was not sent")

        self.sent += 1
        self.log.info(f"Command {payload} -> '{topic}'")
        return CommandResult(device_id, topic, payload)
