from dataclasses import dataclass
from enum import Enum
from typing import Optional

from agrolive.core.exceptions import ConfigurationError
from agrolive.models.events import LiveState, ReadingKind


class AlertLevel(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


@dataclass(frozen=True)
class Thresholds:
    moisture_min: float = 20.0
    moisture_max: float = 60.0
    temperature_max: float = 30.0

    def __post_init__(self):
        if self.moisture_min >= self.moisture_max:
            raise ConfigurationError(
                f"moisture_min ({self.moisture_min}) must be below moisture_max ({self.moisture_max})")


@dataclass(frozen=True)
class Alert:
    level: AlertLevel
    kind: ReadingKind
    value: float
    limit: float
    message: str


def evaluate_alerts(state: LiveState, thresholds: Thresholds) -> Optional[Alert]:
    """Most severe breach in the snapshot; absent or non-numeric readings never breach."""
    moisture = state.numeric(ReadingKind.MOISTURE)
    if moisture is not None and moisture < thresholds.moisture_min:
        return Alert(
            AlertLevel.CRITICAL, ReadingKind.MOISTURE, moisture, thresholds.moisture_min,
            f"CRITICAL: Soil Moisture ({moisture:g}%) is below minimum ({thresholds.moisture_min:g}%).",
        )

    temperature = state.numeric(ReadingKind.TEMPERATURE)
    if temperature is not None and temperature > thresholds.temperature_max:
        return Alert(
            AlertLevel.WARNING, ReadingKind.TEMPERATURE, temperature, thresholds.temperature_max,
            f"WARNING: Temperature ({temperature:g}°C) exceeds maximum ({thresholds.temperature_max:g}°C).",
        )

    return None
