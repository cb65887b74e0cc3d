"""
MQTT Transport Implementation
paho-mqtt connection that inherits from BaseTransport
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional
import paho.mqtt.client as mqtt

from agrolive.core.exceptions import BrokerConnectionError, ConfigurationError, ConnectionReason
from agrolive.protocols.base_transport import (
    BaseTransport,
    Credentials,
    Frame,
    FrameType,
    TransportConfig,
    TransportType,
)

# CONNACK codes meaning "bad credentials" / "not authorised" (MQTT 3.1.1 and 5)
AUTH_REASON_CODES = {4, 5, 134, 135}


class MQTTTransport(BaseTransport):
    """
    MQTT transport.

    Features:
    - Handshake completion awaited on CONNACK
    - Broker keepalive as heartbeat
    - paho's network thread never touches shared state: every callback is
      handed to the event loop with ``call_soon_threadsafe``
    - paho's own reconnect is disabled; the supervisor owns reconnection
    """

    def __init__(self, config: TransportConfig):
        if config.transport_type != TransportType.MQTT:
            raise ValueError("Config must be for MQTT transport")

        super().__init__(config)

        # MQTT-specific attributes
        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connack: Optional[asyncio.Future] = None

        # Parse MQTT-specific configuration
        self._parse_mqtt_config()

    def _parse_mqtt_config(self):
        """Parse MQTT-specific configuration parameters."""
        params = self.config.connection_params

        self.broker_host = params.get('host', 'localhost')
        self.broker_port = params.get('port', 1883)
        self.client_id = params.get('client_id') or f"agrolive_{int(datetime.now().timestamp())}"
        self.clean_session = params.get('clean_session', True)
        self.keepalive = params.get('keepalive', int(self.config.heartbeat_interval))

        # Authentication defaults, overridden by credentials at connect time
        self.username = params.get('username')
        self.password = params.get('password')

        # TLS/SSL
        self.use_tls = params.get('use_tls', False)
        self.ca_certs = params.get('ca_certs')
        self.certfile = params.get('certfile')
        self.keyfile = params.get('keyfile')

    def _validate_config(self):
        """Validate MQTT-specific configuration."""
        if not self.broker_host:
            raise ConfigurationError("MQTT broker host is required")

        if not isinstance(self.broker_port, int) or not (1 <= self.broker_port <= 65535):
            raise ConfigurationError("MQTT broker port must be a valid port number")

    def _make_client(self, credentials: Credentials) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=self.clean_session,
            protocol=mqtt.MQTTv311,
        )

        username = credentials.username or self.username
        password = credentials.password or self.password
        if username:
            client.username_pw_set(username, password)

        if self.use_tls:
            client.tls_set(
                ca_certs=self.ca_certs,
                certfile=self.certfile,
                keyfile=self.keyfile
            )

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        client.on_subscribe = self._on_subscribe
        client.on_unsubscribe = self._on_unsubscribe
        client.on_log = self._on_log
        return client

    async def _open_connection(self, credentials: Credentials):
        """Open the socket, start paho's network thread and wait for CONNACK."""
        self._loop = asyncio.get_running_loop()
        self._connack = self._loop.create_future()
        self._client = self._make_client(credentials)

        self.logger.info(f"Connecting to MQTT broker at {self.broker_host}:{self.broker_port}")

        # blocking socket connect runs off the event loop
        await self._loop.run_in_executor(
            None, self._client.connect, self.broker_host, self.broker_port, self.keepalive
        )
        self._client.loop_start()

        await self._connack
        self.logger.info("Successfully connected to MQTT broker")

    async def _teardown(self):
        client, self._client = self._client, None
        if self._connack and not self._connack.done():
            self._connack.cancel()
        if client is not None:
            await self._stop_client(client)

    async def _stop_client(self, client: mqtt.Client):
        try:
            client.disconnect()
        except Exception as e:
            self.logger.debug(f"disconnect on dead client: {e}")
        # loop_stop joins paho's thread; keep it off the event loop
        await asyncio.get_running_loop().run_in_executor(None, client.loop_stop)

    def _write(self, frame: Frame):
        client = self._client
        if client is None:
            raise ConnectionError("MQTT client is not connected")

        if frame.type is FrameType.SUBSCRIBE:
            result, _mid = client.subscribe(frame.topic, frame.qos)
        elif frame.type is FrameType.UNSUBSCRIBE:
            result, _mid = client.unsubscribe(frame.topic)
        else:
            result = client.publish(frame.topic, frame.payload, frame.qos).rc

        if result != mqtt.MQTT_ERR_SUCCESS:
            raise RuntimeError(f"paho returned {mqtt.error_string(result)}")

        self.logger.info(f"{frame.type.value.capitalize()} '{frame.topic}' (QoS {frame.qos})")

    # ------------------------------------------------------------------ #
    #  paho callbacks (network thread) -> event loop
    # ------------------------------------------------------------------ #
    def _post(self, fn: Callable[..., Any], *args: Any):
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # loop shut down between the check and the call
            pass

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        self._post(self._handle_connack, client, reason_code)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        self._post(self._handle_disconnect, client, reason_code)

    def _on_message(self, client, userdata, msg):
        self._post(self._emit_frame, {
            'topic': msg.topic,
            'payload': msg.payload,
            'qos': msg.qos,
            'retain': msg.retain,
        })

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties):
        self.logger.debug(f"Subscription acknowledged (mid {mid}): {reason_code_list}")

    def _on_unsubscribe(self, client, userdata, mid, reason_code_list, properties):
        self.logger.debug(f"Unsubscription acknowledged for message ID: {mid}")

    def _on_log(self, client, userdata, level, buf):
        """Callback for MQTT client logging."""
        level_map = {
            mqtt.MQTT_LOG_DEBUG: logging.DEBUG,
            mqtt.MQTT_LOG_INFO: logging.DEBUG,
            mqtt.MQTT_LOG_NOTICE: logging.INFO,
            mqtt.MQTT_LOG_WARNING: logging.WARNING,
            mqtt.MQTT_LOG_ERR: logging.ERROR
        }
        self.logger.log(level_map.get(level, logging.DEBUG), f"MQTT: {buf}")

    # ------------------------------------------------------------------ #
    #  event-loop side
    # ------------------------------------------------------------------ #
    def _handle_connack(self, client, reason_code):
        if client is not self._client or self._connack is None or self._connack.done():
            return
        if reason_code.is_failure:
            reason = (ConnectionReason.AUTH if reason_code.value in AUTH_REASON_CODES
                      else ConnectionReason.NETWORK)
            self._connack.set_exception(BrokerConnectionError(reason, f"CONNACK refused: {reason_code}"))
        else:
            self._connack.set_result(None)

    def _handle_disconnect(self, client, reason_code):
        if client is not self._client:
            return
        if self._connack is not None and not self._connack.done():
            self._connack.set_exception(
                BrokerConnectionError(ConnectionReason.NETWORK, f"disconnected during handshake: {reason_code}"))
            return

        # detach before paho retries on its own
        self._client = None
        self._spawn(self._stop_client(client))
        code = self.ABNORMAL_CLOSE if reason_code.is_failure else self.NORMAL_CLOSE
        self._connection_lost(code, str(reason_code))
