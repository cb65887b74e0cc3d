import logging
from typing import Dict, Type, Union

from agrolive.core.exceptions import ConfigurationError
from agrolive.protocols.base_transport import BaseTransport, TransportConfig, TransportType
from agrolive.protocols.mqtt_transport import MQTTTransport
from agrolive.protocols.simulation_transport import SimulationTransport
from agrolive.protocols.websocket_transport import WebSocketTransport

logger = logging.getLogger(__name__)


class TransportFactory:

    _registry: Dict[TransportType, Type[BaseTransport]] = {
        TransportType.MQTT: MQTTTransport,
        TransportType.WEBSOCKET: WebSocketTransport,
        TransportType.SIMULATION: SimulationTransport,
    }

    @classmethod
    def create(cls, transport_type: Union[TransportType, str], config: TransportConfig) -> BaseTransport:
        """
        Create a transport.

        Args:
            transport_type: 'mqtt', 'websocket' or 'simulation'
            config: TransportConfig for the same transport type

        Returns:
            BaseTransport: unconnected transport instance
        """
        try:
            transport_type = TransportType(transport_type)
        except ValueError as e:
            raise ConfigurationError(f"Unknown transport type: {transport_type}") from e

        if config.transport_type != transport_type:
            raise ConfigurationError(
                f"Config is for {config.transport_type.value}, not {transport_type.value}")

        handler = cls._registry.get(transport_type)
        if not handler:
            raise ConfigurationError(f"No handler registered for transport: {transport_type.value}")

        logger.debug(f"Creating {handler.__name__} with params {sorted(config.connection_params)}")
        return handler(config)
