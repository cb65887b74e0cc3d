import json
import logging
import math
from typing import Any, Dict, List, Optional

from agrolive.core.exceptions import ParseError
from agrolive.models.events import (
    PUMP_OFF,
    PUMP_ON,
    ReadingKind,
    SensorEvent,
    epoch_to_iso,
)
from .base_mapper import MISSING, FrameContext, PayloadDecoder, ShapeMatcher

logger = logging.getLogger(__name__)

SENSOR_KEYS: Dict[str, ReadingKind] = {
    "temp":        ReadingKind.TEMPERATURE,
    "temperature": ReadingKind.TEMPERATURE,
    "moisture":    ReadingKind.MOISTURE,
    "humidity":    ReadingKind.HUMIDITY,
    "light":       ReadingKind.LIGHT,
    "battery":     ReadingKind.BATTERY,
}

POWER_KEYS = ("power", "status", "pump", "pumpStatus")
MODE_KEYS = ("mode", "pumpMode")

# envelope fields that never carry a reading
META_KEYS = frozenset({
    "topic", "timestamp", "ts", "deviceId", "device_id",
    "type", "action", "messageType", "qos", "retain", "payload",
})

WRAPPED_TYPES = ("sensor_data", "sensor_update")

_ON = {"ON", "TRUE", "1"}
_OFF = {"OFF", "FALSE", "0"}


###############################################################################
# coercion --------------------------------------------------------------------
###############################################################################

def coerce_number(value: Any) -> Any:
    """Numbers and numeric strings become float; anything else keeps its literal value."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else str(value)
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return value
        return number if math.isfinite(number) else value
    return value


def coerce_power(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return PUMP_ON if value else PUMP_OFF
    if isinstance(value, (int, float)) and value in (0, 1):
        return PUMP_ON if value == 1 else PUMP_OFF
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper in _ON:
            return PUMP_ON
        if upper in _OFF:
            return PUMP_OFF
    return None


def coerce_mode(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip().lower()
    return None


def sensor_kinds_in(fields: Dict[str, Any]) -> Dict[ReadingKind, Any]:
    found: Dict[ReadingKind, Any] = {}
    for key, value in fields.items():
        kind = SENSOR_KEYS.get(key)
        if kind is not None:
            found[kind] = coerce_number(value)
    return found


def actuator_readings_in(fields: Dict[str, Any]) -> Dict[ReadingKind, str]:
    found: Dict[ReadingKind, str] = {}
    for key in POWER_KEYS:
        if key not in fields:
            continue
        power = coerce_power(fields[key])
        if power is not None:
            found[ReadingKind.PUMP_STATUS] = power
            break
        logger.warning(f"Unrecognised pump power value in '{key}': {fields[key]!r}")
    for key in MODE_KEYS:
        if key not in fields:
            continue
        mode = coerce_mode(fields[key])
        if mode is not None:
            found[ReadingKind.PUMP_MODE] = mode
            break
    return found


def _keyed_by_topic(fields: Dict[str, Any], ctx: FrameContext) -> Dict[str, Any]:
    """``{"value": 30}`` on ``.../stream/temp`` means ``{"temp": 30}``."""
    if ctx.topic_kind is None or ctx.topic_class != "stream":
        return fields
    if any(k in SENSOR_KEYS for k in fields):
        return fields
    for alias in ("value", "data"):
        if alias in fields and not isinstance(fields[alias], (dict, list)):
            return {ctx.topic_kind: fields[alias]}
    return fields


def _pop_timestamp(fields: Dict[str, Any], ctx: FrameContext) -> Dict[str, Any]:
    fields = dict(fields)
    for key in ("timestamp", "ts"):
        if key in fields:
            ts = fields.pop(key)
            if ts not in (None, ""):
                ctx.timestamp = normalize_timestamp(ts, ctx.timestamp)
    return fields


def normalize_timestamp(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        try:
            return epoch_to_iso(float(value))
        except (OverflowError, OSError, ValueError):
            return default
    return default


###############################################################################
# envelope decoders (priority order) ------------------------------------------
###############################################################################

def _scalar_fields(value: Any, ctx: FrameContext) -> Dict[str, Any]:
    """A bare value takes its reading kind from the topic."""
    if ctx.topic_kind is None:
        raise ParseError("scalar payload without a topic kind")
    if isinstance(value, float) and not math.isfinite(value):
        raise ParseError(f"non-finite scalar payload: {value}")
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            raise ParseError("empty payload")
    if ctx.topic_class == "state":
        # bare "on"/"off" on the actuator topic
        return {"power": value}
    return {ctx.topic_kind: value}


class NestedStringPayloadDecoder(PayloadDecoder):
    """
    String ``payload``; parsed exactly once.

    An object is decoded as readings, a JSON number or boolean as a scalar.
    Lists, strings and null are malformed. Text that is not JSON at all is
    a plain scalar unless it looks like broken structured data.
    """

    def validate(self, ctx: FrameContext) -> bool:
        return isinstance(ctx.payload, str)

    def transform(self, ctx: FrameContext) -> Dict[str, Any]:
        try:
            inner = json.loads(ctx.payload)
        except json.JSONDecodeError as e:
            if ctx.payload.lstrip().startswith(("{", "[", '"')):
                raise ParseError(f"nested payload is not valid JSON: {e}") from e
            return _scalar_fields(ctx.payload, ctx)

        if isinstance(inner, dict):
            return _keyed_by_topic(_pop_timestamp(inner, ctx), ctx)
        if isinstance(inner, (bool, int, float)):
            return _scalar_fields(inner, ctx)
        raise ParseError(f"nested payload is a {type(inner).__name__}, not an object")


class ObjectPayloadDecoder(PayloadDecoder):
    def validate(self, ctx: FrameContext) -> bool:
        return isinstance(ctx.payload, dict)

    def transform(self, ctx: FrameContext) -> Dict[str, Any]:
        return _keyed_by_topic(_pop_timestamp(ctx.payload, ctx), ctx)


class WrappedDataDecoder(PayloadDecoder):
    """``{"type": "sensor_data", "data": {...}}`` gateway shape."""

    def validate(self, ctx: FrameContext) -> bool:
        kind = ctx.envelope.get("type") or ctx.envelope.get("messageType")
        return kind in WRAPPED_TYPES and isinstance(ctx.envelope.get("data"), dict)

    def transform(self, ctx: FrameContext) -> Dict[str, Any]:
        return _pop_timestamp(ctx.envelope["data"], ctx)


class FlatEnvelopeDecoder(PayloadDecoder):
    """Readings sit next to the envelope fields, no ``payload`` key."""

    def validate(self, ctx: FrameContext) -> bool:
        if ctx.payload is not MISSING:
            return False
        return any(k not in META_KEYS for k in ctx.envelope)

    def transform(self, ctx: FrameContext) -> Dict[str, Any]:
        fields = {k: v for k, v in ctx.envelope.items() if k not in META_KEYS}
        return _keyed_by_topic(fields, ctx)


class ScalarPayloadDecoder(PayloadDecoder):
    """Non-string number or boolean payload; the reading kind comes from the topic."""

    def validate(self, ctx: FrameContext) -> bool:
        return ctx.topic_kind is not None and isinstance(ctx.payload, (int, float, bool))

    def transform(self, ctx: FrameContext) -> Dict[str, Any]:
        return _scalar_fields(ctx.payload, ctx)


###############################################################################
# shape matchers (priority order) ---------------------------------------------
###############################################################################

class BatchUpdateMatcher(ShapeMatcher):
    """More than two sensor keys at once become one batchUpdate event."""

    exclusive = True

    def __init__(self, min_keys: int = 3):
        self.min_keys = min_keys

    def validate(self, fields: Dict[str, Any]) -> bool:
        return len(sensor_kinds_in(fields)) >= self.min_keys

    def transform(self, fields: Dict[str, Any], ctx: FrameContext) -> List[SensorEvent]:
        readings: Dict[ReadingKind, Any] = sensor_kinds_in(fields)
        readings.update(actuator_readings_in(fields))
        return [SensorEvent(ctx.device_id, ReadingKind.BATCH_UPDATE, readings,
                            ctx.timestamp, ctx.source_topic)]


class SensorFieldMatcher(ShapeMatcher):
    def validate(self, fields: Dict[str, Any]) -> bool:
        return any(k in SENSOR_KEYS for k in fields)

    def transform(self, fields: Dict[str, Any], ctx: FrameContext) -> List[SensorEvent]:
        return [
            SensorEvent(ctx.device_id, kind, value, ctx.timestamp, ctx.source_topic)
            for kind, value in sensor_kinds_in(fields).items()
        ]


class ActuatorStateMatcher(ShapeMatcher):
    def validate(self, fields: Dict[str, Any]) -> bool:
        return any(k in fields for k in POWER_KEYS + MODE_KEYS)

    def transform(self, fields: Dict[str, Any], ctx: FrameContext) -> List[SensorEvent]:
        return [
            SensorEvent(ctx.device_id, kind, value, ctx.timestamp, ctx.source_topic)
            for kind, value in actuator_readings_in(fields).items()
        ]


__all__ = [
    "coerce_number", "coerce_power", "coerce_mode", "normalize_timestamp",
    "NestedStringPayloadDecoder", "ObjectPayloadDecoder", "WrappedDataDecoder",
    "FlatEnvelopeDecoder", "ScalarPayloadDecoder",
    "BatchUpdateMatcher", "SensorFieldMatcher", "ActuatorStateMatcher",
]
