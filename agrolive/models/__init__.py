"""Data models and domain objects."""

from .events import (
    ReadingKind,
    SensorEvent,
    LiveState,
    PUMP_ON,
    PUMP_OFF,
    MODE_AUTO,
    MODE_MANUAL,
)

from .topics import TopicScheme, TopicParts, parse_topic

__all__ = [
    # Domain models
    'ReadingKind',
    'SensorEvent',
    'LiveState',
    'PUMP_ON',
    'PUMP_OFF',
    'MODE_AUTO',
    'MODE_MANUAL',

    # Topic naming
    'TopicScheme',
    'TopicParts',
    'parse_topic',
]
