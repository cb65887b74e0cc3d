"""
Centralised exception definitions for the AgroLive live-data core.
All custom exceptions should inherit from AgroLiveError.
"""
from enum import Enum


class AgroLiveError(Exception):
    """Base class for every custom exception thrown by this project."""


class ConfigurationError(AgroLiveError):
    """Raised when configuration values or environment variables are invalid."""


class ConnectionReason(str, Enum):
    NETWORK = "network"
    AUTH = "auth"
    TIMEOUT = "timeout"


class BrokerConnectionError(AgroLiveError):
    """The transport handshake did not complete."""

    def __init__(self, reason: ConnectionReason, message: str = ""):
        self.reason = ConnectionReason(reason)
        super().__init__(message or f"connection failed ({self.reason.value})")


class CommandReason(str, Enum):
    OFFLINE = "offline"
    REJECTED = "rejected"


class CommandError(AgroLiveError):
    """An actuator command could not be sent. Never retried by the core."""

    def __init__(self, reason: CommandReason, message: str = ""):
        self.reason = CommandReason(reason)
        super().__init__(message or f"command failed ({self.reason.value})")


class ParseError(AgroLiveError):
    """A raw frame could not be decoded. Absorbed inside the normalizer."""
