from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from agrolive.core.exceptions import ParseError
from agrolive.models.events import SensorEvent

MISSING = object()


@dataclass
class FrameContext:
    """Everything known about one inbound frame before shape matching."""
    device_id: str
    source_topic: str
    topic_class: Optional[str]
    topic_kind: Optional[str]
    timestamp: str
    envelope: Dict[str, Any] = field(default_factory=dict)
    payload: Any = MISSING


class PayloadDecoder(ABC):
    """Turns one envelope shape into a flat ``{field: value}`` mapping."""

    @abstractmethod
    def validate(self, ctx: FrameContext) -> bool:
        """True when this decoder recognises the envelope shape"""
        pass

    @abstractmethod
    def transform(self, ctx: FrameContext) -> Dict[str, Any]:
        """Return the flat field mapping; raise ParseError when it cannot"""
        pass


class ShapeMatcher(ABC):
    """Maps a flat field mapping to canonical events."""

    # an exclusive matcher ends the pipeline when it produces events
    exclusive: bool = False

    @abstractmethod
    def validate(self, fields: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    def transform(self, fields: Dict[str, Any], ctx: FrameContext) -> List[SensorEvent]:
        pass


class NormalizationPipeline:
    """Priority-ordered decoders followed by priority-ordered shape matchers"""

    def __init__(self, decoders: List[PayloadDecoder], matchers: List[ShapeMatcher]):
        self.decoders = decoders
        self.matchers = matchers
        self.logger = logging.getLogger(self.__class__.__name__)

    def decode(self, ctx: FrameContext) -> Dict[str, Any]:
        for decoder in self.decoders:
            if decoder.validate(ctx):
                self.logger.debug(f"Decoded with {decoder.__class__.__name__}")
                return decoder.transform(ctx)
        raise ParseError(f"no decoder accepts frame on '{ctx.source_topic}'")

    def process(self, ctx: FrameContext) -> List[SensorEvent]:
        fields = self.decode(ctx)
        events: List[SensorEvent] = []

        for matcher in self.matchers:
            if not matcher.validate(fields):
                continue
            produced = matcher.transform(fields, ctx)
            self.logger.debug(f"Applied {matcher.__class__.__name__}: {len(produced)} events")
            if matcher.exclusive and produced:
                return produced
            events.extend(produced)

        return events
