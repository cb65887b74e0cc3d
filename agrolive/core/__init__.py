# agrolive/core/__init__.py
"""Core infrastructure components for the AgroLive live-data core."""

# Import order: most fundamental to most specific

from .exceptions import (
    AgroLiveError,
    ConfigurationError,
    BrokerConnectionError,
    ConnectionReason,
    CommandError,
    CommandReason,
    ParseError,
)

from .patterns.state_machine import StateMachine, ConnectionState
from .patterns.observer import ListenerSubject


__all__ = [
    "StateMachine",
    "ConnectionState",
    "ListenerSubject",
    "AgroLiveError",
    "ConfigurationError",
    "BrokerConnectionError",
    "ConnectionReason",
    "CommandError",
    "CommandReason",
    "ParseError",
]
