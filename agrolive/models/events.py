from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union
import math


###############################################################################
# 1. READING KINDS -------------------------------------------------------------
###############################################################################

class ReadingKind(str, Enum):
    MOISTURE     = "moisture"
    TEMPERATURE  = "temperature"
    HUMIDITY     = "humidity"
    LIGHT        = "light"
    BATTERY      = "battery"
    PUMP_STATUS  = "pumpStatus"
    PUMP_MODE    = "pumpMode"
    BATCH_UPDATE = "batchUpdate"


# LiveState attribute per kind
FIELD_FOR_KIND: Dict[ReadingKind, str] = {
    ReadingKind.MOISTURE:    "moisture",
    ReadingKind.TEMPERATURE: "temperature",
    ReadingKind.HUMIDITY:    "humidity",
    ReadingKind.LIGHT:       "light",
    ReadingKind.BATTERY:     "battery",
    ReadingKind.PUMP_STATUS: "pump_status",
    ReadingKind.PUMP_MODE:   "pump_mode",
}

PUMP_ON, PUMP_OFF = "ON", "OFF"
MODE_AUTO, MODE_MANUAL = "auto", "manual"

Reading = Union[float, str, None]


###############################################################################
# 2. SENSOR EVENT -------------------------------------------------------------
###############################################################################

@dataclass(frozen=True, slots=True)
class SensorEvent:
    """Canonical normalized reading or actuator-state change."""
    device_id: str
    kind: ReadingKind
    value: Any                          # Mapping[ReadingKind, Reading] for batchUpdate
    timestamp: str = field(default_factory=lambda: local_now())
    source_topic: str = ""

    @property
    def is_batch(self) -> bool:
        return self.kind is ReadingKind.BATCH_UPDATE

    def readings(self) -> Dict[ReadingKind, Any]:
        """Every (kind, value) pair carried by this event."""
        if self.is_batch:
            return dict(self.value)
        return {self.kind: self.value}

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if self.is_batch:
            value = {k.value: v for k, v in self.value.items()}
        return {
            "deviceId":    self.device_id,
            "kind":        self.kind.value,
            "value":       value,
            "timestamp":   self.timestamp,
            "sourceTopic": self.source_topic,
        }


###############################################################################
# 3. LIVE STATE ---------------------------------------------------------------
###############################################################################

@dataclass(frozen=True, slots=True)
class LiveState:
    """Latest-known-value snapshot for the subscribed device."""
    device_id: str
    moisture: Reading = None
    temperature: Reading = None
    humidity: Reading = None
    light: Reading = None
    battery: Reading = None
    pump_status: str = PUMP_OFF
    pump_mode: str = MODE_MANUAL
    is_connected: bool = False
    updated_at: Optional[str] = None

    # ---------- factory --------------------------------------------------- #
    @classmethod
    def unknown(cls, device_id: str, *, is_connected: bool = False) -> "LiveState":
        return cls(device_id=device_id, is_connected=is_connected)

    def value(self, kind: ReadingKind) -> Any:
        return getattr(self, FIELD_FOR_KIND[ReadingKind(kind)])

    def numeric(self, kind: ReadingKind) -> Optional[float]:
        """Numeric reading, or None when the value is absent or not a number."""
        return as_number(self.value(kind))

    def merged(self, readings: Mapping[ReadingKind, Any], timestamp: Optional[str] = None) -> "LiveState":
        changes = {FIELD_FOR_KIND[k]: v for k, v in readings.items() if k in FIELD_FOR_KIND}
        return replace(self, updated_at=timestamp or self.updated_at, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId":    self.device_id,
            "moisture":    self.moisture,
            "temperature": self.temperature,
            "humidity":    self.humidity,
            "light":       self.light,
            "battery":     self.battery,
            "pumpStatus":  self.pump_status,
            "pumpMode":    self.pump_mode,
            "isConnected": self.is_connected,
            "time":        self.updated_at,
        }


###############################################################################
# helpers ---------------------------------------------------------------------
###############################################################################

def local_now() -> str:
    return datetime.now().astimezone().isoformat()


def as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    return None


def epoch_to_iso(ts: float) -> str:
    if ts > 1e12:                       # milliseconds
        ts = ts / 1000.0
    return datetime.fromtimestamp(ts, tz=timezone.utc).astimezone().isoformat()
