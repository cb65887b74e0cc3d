"""Connection transport implementations."""

from .base_transport import (
    BaseTransport,
    Credentials,
    Frame,
    FrameType,
    TransportConfig,
    TransportType,
)

from .mqtt_transport import MQTTTransport
from .websocket_transport import WebSocketTransport
from .simulation_transport import SimulationTransport
from .transport_factory import TransportFactory

__all__ = [
    # Base classes
    'BaseTransport',
    'Credentials',
    'Frame',
    'FrameType',
    'TransportConfig',
    'TransportType',

    # Implementations
    'MQTTTransport',
    'WebSocketTransport',
    'SimulationTransport',

    # Factory
    'TransportFactory'
]
