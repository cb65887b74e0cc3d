"""
Connection Transport Framework
Base abstract class and wire types for the single broker/gateway connection
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Optional, Set
import asyncio
import json
import logging
import time
from enum import Enum

from agrolive.core.exceptions import BrokerConnectionError, ConfigurationError, ConnectionReason
from agrolive.core.patterns.observer import ListenerSubject


class TransportType(Enum):
    """Enumeration of supported transport types."""
    MQTT = "mqtt"
    WEBSOCKET = "websocket"
    SIMULATION = "simulation"


class FrameType(str, Enum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PUBLISH = "publish"


@dataclass(frozen=True)
class Frame:
    """One outbound protocol frame: ``{type, topic, payload?, qos?}``."""
    type: FrameType
    topic: str
    payload: Optional[str] = None
    qos: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value, "topic": self.topic}
        if self.payload is not None:
            data["payload"] = self.payload
        if self.qos:
            data["qos"] = self.qos
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class Credentials:
    """Session material supplied by the auth collaborator."""
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def __repr__(self) -> str:
        return (f"Credentials(token={'***' if self.token else None}, "
                f"username={self.username!r}, password={'***' if self.password else None})")


class TransportConfig:
    """Configuration class for transports."""

    def __init__(self,
                 transport_type: TransportType,
                 connection_params: Dict[str, Any] = None,
                 timeout: float = 15.0,
                 heartbeat_interval: float = 30.0,
                 metadata: Dict[str, Any] = None):
        self.transport_type = transport_type
        self.connection_params = connection_params or {}
        self.timeout = timeout
        self.heartbeat_interval = heartbeat_interval
        self.metadata = metadata or {}

        if not 5 <= self.timeout <= 30:
            raise ConfigurationError(f"handshake timeout must be within 5-30 seconds, got {timeout}")
        if self.heartbeat_interval <= 0:
            raise ConfigurationError("heartbeat interval must be positive")


class BaseTransport(ABC):
    """
    Abstract base class for the broker connection.

    Implements the Template Method pattern: ``connect`` validates config,
    runs the transport-specific handshake under a bounded timeout and maps
    failures onto BrokerConnectionError. ``send`` never raises. Inbound
    messages go to ``frames`` listeners unfiltered and in arrival order;
    close events go to ``closed`` listeners with ``normal=True`` only for a
    user-requested close.
    """

    NORMAL_CLOSE = 1000
    ABNORMAL_CLOSE = 1006

    def __init__(self, config: TransportConfig):
        self.config = config
        self.logger = logging.getLogger(f"{self.__class__.__name__}")
        self._open = False
        self._tasks: Set[asyncio.Task] = set()

        self.frames: ListenerSubject = ListenerSubject("frames")
        self.opened: ListenerSubject = ListenerSubject("opened")
        self.closed: ListenerSubject = ListenerSubject("closed")

        self._start_time = time.time()
        self._frames_in = 0
        self._frames_out = 0
        self._send_failures = 0

    @property
    def is_open(self) -> bool:
        return self._open

    # Template method - defines the handshake skeleton
    async def connect(self, credentials: Credentials) -> None:
        if self._open:
            self.logger.debug("Connect called on an open transport")
            return

        self._validate_config()
        self.logger.info(f"Opening {self.config.transport_type.value} transport...")

        try:
            await asyncio.wait_for(self._open_connection(credentials), timeout=self.config.timeout)
        except BrokerConnectionError:
            await self._safe_teardown()
            raise
        except asyncio.TimeoutError as e:
            await self._safe_teardown()
            raise BrokerConnectionError(
                ConnectionReason.TIMEOUT, f"handshake timed out after {self.config.timeout}s") from e
        except OSError as e:
            await self._safe_teardown()
            raise BrokerConnectionError(ConnectionReason.NETWORK, str(e)) from e
        except asyncio.CancelledError:
            await self._safe_teardown()
            raise

        self._open = True
        self._after_open()
        self.logger.info("Transport open")
        self.opened.notify()

    def send(self, frame: Frame) -> bool:
        """Write one frame; False when the transport is not open or the write fails."""
        if not self._open:
            self.logger.debug(f"Transport not open, dropping {frame.type.value} for '{frame.topic}'")
            return False
        try:
            self._write(frame)
        except Exception as e:
            self._send_failures += 1
            self.logger.error(f"Error sending {frame.type.value} to '{frame.topic}': {e}")
            return False
        self._frames_out += 1
        return True

    async def close(self) -> None:
        """User-requested close; listeners see ``normal=True``."""
        was_open = self._open
        self._open = False
        await self._safe_teardown()
        if was_open:
            self.logger.info("Transport closed by request")
            self.closed.notify(True)

    # Abstract methods that subclasses must implement (Strategy pattern)
    @abstractmethod
    def _validate_config(self):
        """Validate transport-specific configuration."""
        pass

    @abstractmethod
    async def _open_connection(self, credentials: Credentials):
        """Complete the handshake or raise."""
        pass

    @abstractmethod
    async def _teardown(self):
        """Release the socket and any background tasks."""
        pass

    @abstractmethod
    def _write(self, frame: Frame):
        """Hand one frame to the socket; raise on failure."""
        pass

    def _after_open(self):
        """Start background workers once the transport counts as open."""
        pass

    # Common implementations used by subclasses
    def _emit_frame(self, raw: Any) -> None:
        self._frames_in += 1
        self.frames.notify(raw)

    def _connection_lost(self, code: int, reason: str = "") -> None:
        """Called by subclasses when the peer or the network drops the socket."""
        if not self._open:
            return
        self._open = False
        normal = code == self.NORMAL_CLOSE
        if normal:
            self.logger.info(f"Connection closed by peer (code: {code})")
        else:
            self.logger.warning(f"Unexpected disconnection (code: {code}) {reason}".rstrip())
        self.closed.notify(normal)

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _safe_teardown(self):
        try:
            await self._teardown()
        except Exception as e:
            self.logger.error(f"Error during teardown: {e}")

    # Utility methods
    def get_stats(self) -> Dict[str, Any]:
        """Get transport statistics."""
        return {
            "transport_type": self.config.transport_type.value,
            "open": self._open,
            "frames_in": self._frames_in,
            "frames_out": self._frames_out,
            "send_failures": self._send_failures,
            "uptime": time.time() - self._start_time,
        }
