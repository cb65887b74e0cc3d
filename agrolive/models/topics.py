"""Canonical topic naming: ``<namespace>/<deviceId>/<class>/<kind>``."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from agrolive.core.exceptions import ConfigurationError

STREAM, STATE = "stream", "state"


@dataclass(frozen=True, slots=True)
class TopicParts:
    namespace: str
    device_id: str
    topic_class: str                    # "stream" | "state"
    kind: str                           # e.g. "temp", "pump", "motor/paddy"


@dataclass(frozen=True, slots=True)
class TopicScheme:
    namespace: str = "protonest"
    stream_kinds: Tuple[str, ...] = ("temp", "humidity", "battery", "light", "moisture")
    state_kind: str = "pump"

    def __post_init__(self):
        if not self.namespace or "/" in self.namespace:
            raise ConfigurationError(f"invalid topic namespace: {self.namespace!r}")
        if not self.stream_kinds:
            raise ConfigurationError("at least one stream kind is required")
        if not self.state_kind:
            raise ConfigurationError("state kind is required")

    def device_prefix(self, device_id: str) -> str:
        return f"{self.namespace}/{device_id}/"

    def stream_topic(self, device_id: str, kind: str) -> str:
        return f"{self.namespace}/{device_id}/{STREAM}/{kind}"

    def state_topic(self, device_id: str) -> str:
        return f"{self.namespace}/{device_id}/{STATE}/{self.state_kind}"

    def topics_for(self, device_id: str) -> Tuple[str, ...]:
        """Fixed topic set for a device: every sensor stream plus the actuator state."""
        if not device_id or "/" in device_id:
            raise ConfigurationError(f"invalid device id: {device_id!r}")
        return tuple(self.stream_topic(device_id, k) for k in self.stream_kinds) + (
            self.state_topic(device_id),
        )

    def parse(self, topic: str) -> Optional[TopicParts]:
        return parse_topic(topic, self.namespace)


def parse_topic(topic: str, namespace: Optional[str] = None) -> Optional[TopicParts]:
    """Split a wire topic; None when it does not follow the canonical layout."""
    if not isinstance(topic, str):
        return None
    parts = topic.split("/")
    if len(parts) < 4 or not all(parts[:4]):
        return None
    if namespace is not None and parts[0] != namespace:
        return None
    if parts[2] not in (STREAM, STATE):
        return None
    return TopicParts(parts[0], parts[1], parts[2], "/".join(parts[3:]))
