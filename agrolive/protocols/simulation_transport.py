"""
Simulation Transport
Synthetic device readings for development; selected explicitly, never a fallback
"""

import asyncio
import json
import random
from typing import Dict, Optional, Set, Tuple

from agrolive.core.exceptions import ConfigurationError
from agrolive.models.topics import STREAM, parse_topic
from agrolive.protocols.base_transport import (
    BaseTransport,
    Credentials,
    Frame,
    FrameType,
    TransportConfig,
    TransportType,
)

# (low, high) per stream kind
READING_RANGES: Dict[str, Tuple[float, float]] = {
    "temp":     (18.0, 35.0),
    "humidity": (40.0, 90.0),
    "moisture": (10.0, 70.0),
    "light":    (100.0, 1000.0),
    "battery":  (20.0, 100.0),
}


class SimulationTransport(BaseTransport):
    """In-process gateway: tracks subscriptions, emits readings, echoes pump commands."""

    def __init__(self, config: TransportConfig):
        if config.transport_type != TransportType.SIMULATION:
            raise ValueError("Config must be for simulation transport")

        super().__init__(config)

        params = self.config.connection_params
        self.interval = params.get('interval', 5.0)
        self._random = random.Random(params.get('seed'))
        self._subscribed: Set[str] = set()
        self._generator: Optional[asyncio.Task] = None

    @property
    def subscribed_topics(self) -> Set[str]:
        return set(self._subscribed)

    def _validate_config(self):
        if self.interval <= 0:
            raise ConfigurationError("simulation interval must be positive")

    async def _open_connection(self, credentials: Credentials):
        self._subscribed.clear()
        self._generator = asyncio.create_task(self._generate())
        self.logger.info(f"Simulation started, one reading per topic every {self.interval}s")

    async def _teardown(self):
        task, self._generator = self._generator, None
        if task is not None and not task.done():
            task.cancel()
        self._subscribed.clear()

    def _write(self, frame: Frame):
        if frame.type is FrameType.SUBSCRIBE:
            self._subscribed.add(frame.topic)
        elif frame.type is FrameType.UNSUBSCRIBE:
            self._subscribed.discard(frame.topic)
        elif frame.topic in self._subscribed:
            # a real device reports its new actuator state on the same topic
            asyncio.get_running_loop().call_soon(
                self._emit_frame, {"topic": frame.topic, "payload": frame.payload})
        self.logger.debug(f"Simulated {frame.type.value} '{frame.topic}'")

    def sample(self, kind: str) -> float:
        low, high = READING_RANGES.get(kind, (0.0, 100.0))
        return round(self._random.uniform(low, high), 1)

    async def _generate(self):
        while True:
            await asyncio.sleep(self.interval)
            for topic in sorted(self._subscribed):
                parts = parse_topic(topic)
                if parts is None or parts.topic_class != STREAM:
                    continue
                self._emit_frame({
                    "topic": topic,
                    "payload": json.dumps({parts.kind: self.sample(parts.kind)}),
                })

    def get_stats(self):
        stats = super().get_stats()
        stats["simulated_topics"] = len(self._subscribed)
        return stats


__all__ = ["SimulationTransport", "READING_RANGES"]
