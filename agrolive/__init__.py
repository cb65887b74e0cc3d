"""AgroLive - real-time sensor and pump channel for agricultural IoT devices"""

__version__ = '1.0.0'
__description__ = 'Live MQTT/WebSocket data core with normalization, reconnection and pump commands'

# Core patterns - most fundamental
from .core import ConnectionState, StateMachine, AgroLiveError

# Models - domain objects
from .models import LiveState, ReadingKind, SensorEvent, TopicScheme

# Mapping
from .mapping import MessageNormalizer, normalize

# Protocols
from .protocols import Credentials, TransportConfig, TransportFactory, TransportType

# Services - live data facade
from .services import LiveDataService, ReconnectConfig

# Triggers
from .triggers import PumpAutomation, Thresholds, evaluate_alerts

__all__ = [
    # Core
    'ConnectionState',
    'StateMachine',
    'AgroLiveError',

    # Models
    'LiveState',
    'ReadingKind',
    'SensorEvent',
    'TopicScheme',

    # Mapping
    'MessageNormalizer',
    'normalize',

    # Protocols
    'Credentials',
    'TransportConfig',
    'TransportFactory',
    'TransportType',

    # Services
    'LiveDataService',
    'ReconnectConfig',

    # Triggers
    'PumpAutomation',
    'Thresholds',
    'evaluate_alerts',
]
