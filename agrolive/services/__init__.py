"""Live data services."""

from .supervisor import ReconnectConfig, ReconnectionSupervisor
from .subscription_registry import Subscription, SubscriptionRegistry
from .live_state import LiveStateProjector
from .command_publisher import CommandPublisher, CommandResult
from .live_data_service import LiveDataService

__all__ = [
    'ReconnectConfig',
    'ReconnectionSupervisor',
    'Subscription',
    'SubscriptionRegistry',
    'LiveStateProjector',
    'CommandPublisher',
    'CommandResult',
    'LiveDataService',
]
