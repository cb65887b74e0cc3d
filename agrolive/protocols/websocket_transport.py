"""
WebSocket Transport Implementation
JSON gateway connection that inherits from BaseTransport
"""

import asyncio
import json
from typing import Optional
from urllib.parse import quote, urlsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI

from agrolive.core.exceptions import BrokerConnectionError, ConfigurationError, ConnectionReason
from agrolive.protocols.base_transport import (
    BaseTransport,
    Credentials,
    Frame,
    TransportConfig,
    TransportType,
)

AUTH_STATUS_CODES = {401, 403}


class WebSocketTransport(BaseTransport):
    """
    WebSocket gateway transport.

    The JWT rides on the URL as ``?token=``. Outbound frames go through an
    ordered outbox drained by one writer task, so ``send`` stays synchronous.
    A ``{"type": "ping"}`` frame is queued every heartbeat interval.
    """

    def __init__(self, config: TransportConfig):
        if config.transport_type != TransportType.WEBSOCKET:
            raise ValueError("Config must be for WebSocket transport")

        super().__init__(config)

        self._ws: Optional[ClientConnection] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._reader: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None
        self._heartbeat: Optional[asyncio.Task] = None

        self.url = self.config.connection_params.get('url', '')

    def _validate_config(self):
        scheme = urlsplit(self.url).scheme if self.url else ""
        if scheme not in ("ws", "wss"):
            raise ConfigurationError(f"WebSocket URL must start with ws:// or wss://, got {self.url!r}")

    def _url_with_token(self, credentials: Credentials) -> str:
        if not credentials.token:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}token={quote(credentials.token, safe='')}"

    async def _open_connection(self, credentials: Credentials):
        self.logger.info(f"Connecting to WebSocket gateway at {self.url}")
        try:
            self._ws = await connect(
                self._url_with_token(credentials),
                open_timeout=None,          # bounded by BaseTransport.connect
                ping_interval=self.config.heartbeat_interval,
                ping_timeout=self.config.heartbeat_interval,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            reason = ConnectionReason.AUTH if status in AUTH_STATUS_CODES else ConnectionReason.NETWORK
            raise BrokerConnectionError(reason, f"gateway rejected handshake with HTTP {status}") from e
        except (InvalidHandshake, InvalidURI) as e:
            raise BrokerConnectionError(ConnectionReason.NETWORK, str(e)) from e

        self._outbox = asyncio.Queue()
        self.logger.info("WebSocket connected")

    def _after_open(self):
        # the reader must not run before _open is set, or an early peer close is lost
        self._reader = asyncio.create_task(self._read_loop(self._ws))
        self._writer = asyncio.create_task(self._write_loop(self._ws, self._outbox))
        self._heartbeat = asyncio.create_task(self._heartbeat_loop(self._outbox))

    async def _teardown(self):
        self._cancel_workers(include_reader=True)
        ws, self._ws = self._ws, None
        self._outbox = None
        if ws is not None:
            await ws.close(code=self.NORMAL_CLOSE)

    def _cancel_workers(self, include_reader: bool):
        tasks = [self._writer, self._heartbeat]
        if include_reader:
            tasks.append(self._reader)
            self._reader = None
        self._writer = self._heartbeat = None
        for task in tasks:
            if task is not None and not task.done():
                task.cancel()

    def _write(self, frame: Frame):
        if self._outbox is None:
            raise ConnectionError("WebSocket is not connected")
        self._outbox.put_nowait(frame.to_json())
        self.logger.debug(f"Queued {frame.type.value} for '{frame.topic}'")

    async def _write_loop(self, ws: ClientConnection, outbox: asyncio.Queue):
        while True:
            text = await outbox.get()
            try:
                await ws.send(text)
            except ConnectionClosed:
                # the read loop reports the close
                return
            except Exception as e:
                self._send_failures += 1
                self.logger.error(f"Error writing to WebSocket: {e}")

    async def _heartbeat_loop(self, outbox: asyncio.Queue):
        ping = json.dumps({"type": "ping"})
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)
            outbox.put_nowait(ping)

    async def _read_loop(self, ws: ClientConnection):
        try:
            async for message in ws:
                self._emit_frame(message)
        except ConnectionClosed:
            pass
        except Exception as e:
            self.logger.error(f"WebSocket read failed: {e}")

        if ws is not self._ws:
            return
        self._cancel_workers(include_reader=False)
        self._reader = None
        self._ws = None
        self._outbox = None
        code = ws.close_code if ws.close_code is not None else self.ABNORMAL_CLOSE
        self._connection_lost(code, ws.close_reason or "")
