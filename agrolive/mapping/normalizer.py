"""
Message Normalizer

Turns raw transport frames (JSON envelopes, nested payload strings, flat
key/value envelopes, bare MQTT payloads) into canonical SensorEvents.
A single malformed frame never raises out of here.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union

from agrolive.core.exceptions import ParseError
from agrolive.models.events import SensorEvent, local_now
from agrolive.models.topics import TopicScheme, parse_topic
from .base_mapper import MISSING, FrameContext, NormalizationPipeline
from .transformations import (
    ActuatorStateMatcher,
    BatchUpdateMatcher,
    FlatEnvelopeDecoder,
    NestedStringPayloadDecoder,
    ObjectPayloadDecoder,
    ScalarPayloadDecoder,
    SensorFieldMatcher,
    WrappedDataDecoder,
    normalize_timestamp,
)

RawFrame = Union[str, bytes, bytearray, Dict[str, Any]]

KEEPALIVE_TYPES = ("ping", "pong")


def build_pipeline() -> NormalizationPipeline:
    """Create the decoder/matcher pipeline in priority order"""
    return NormalizationPipeline(
        decoders=[
            NestedStringPayloadDecoder(),
            ObjectPayloadDecoder(),
            WrappedDataDecoder(),
            FlatEnvelopeDecoder(),
            ScalarPayloadDecoder(),
        ],
        matchers=[
            BatchUpdateMatcher(),
            SensorFieldMatcher(),
            ActuatorStateMatcher(),
        ],
    )


class MessageNormalizer:
    def __init__(self, scheme: Optional[TopicScheme] = None,
                 pipeline: Optional[NormalizationPipeline] = None):
        self.scheme = scheme
        self.pipeline = pipeline or build_pipeline()
        self.logger = logging.getLogger(self.__class__.__name__)
        self.dropped = 0

    def normalize_all(self, raw_frame: RawFrame) -> List[SensorEvent]:
        """Every event carried by the frame, in payload order; [] when none."""
        try:
            ctx = self._context(raw_frame)
            if ctx is None:
                return []
            events = self.pipeline.process(ctx)
        except ParseError as e:
            self.dropped += 1
            self.logger.warning(f"Dropped malformed frame: {e}")
            return []
        except Exception as e:
            self.dropped += 1
            self.logger.error(f"Unexpected error normalizing frame: {e}", exc_info=True)
            return []

        if not events:
            self.dropped += 1
            self.logger.debug(f"Unrecognised frame shape on '{ctx.source_topic}'")
        return events

    def normalize(self, raw_frame: RawFrame) -> Union[SensorEvent, List[SensorEvent], None]:
        events = self.normalize_all(raw_frame)
        if not events:
            return None
        return events[0] if len(events) == 1 else events

    # ------------------------------------------------------------------ #
    def _context(self, raw_frame: RawFrame) -> Optional[FrameContext]:
        envelope = self._envelope(raw_frame)

        marker = envelope.get("type") or envelope.get("action")
        if marker in KEEPALIVE_TYPES:
            self.logger.debug(f"Keepalive frame: {marker}")
            return None

        topic = envelope.get("topic") if isinstance(envelope.get("topic"), str) else ""
        parts = self.scheme.parse(topic) if self.scheme else parse_topic(topic)

        device_id = parts.device_id if parts else envelope.get("deviceId") or envelope.get("device_id")
        if not isinstance(device_id, str) or not device_id:
            raise ParseError(f"no device id in frame (topic='{topic}')")

        payload = envelope.get("payload", MISSING)
        if isinstance(payload, (bytes, bytearray)):
            payload = _decode_bytes(payload)

        timestamp = local_now()
        for key in ("timestamp", "ts"):
            if envelope.get(key) not in (None, ""):
                timestamp = normalize_timestamp(envelope[key], timestamp)
                break

        return FrameContext(
            device_id=device_id,
            source_topic=topic,
            topic_class=parts.topic_class if parts else None,
            topic_kind=parts.kind if parts else None,
            timestamp=timestamp,
            envelope=envelope,
            payload=payload,
        )

    def _envelope(self, raw_frame: RawFrame) -> Dict[str, Any]:
        if isinstance(raw_frame, dict):
            return dict(raw_frame)
        if isinstance(raw_frame, (bytes, bytearray)):
            raw_frame = _decode_bytes(raw_frame)
        if not isinstance(raw_frame, str):
            raise ParseError(f"unsupported frame type: {type(raw_frame).__name__}")
        try:
            envelope = json.loads(raw_frame)
        except json.JSONDecodeError as e:
            raise ParseError(f"frame is not valid JSON: {e}") from e
        if not isinstance(envelope, dict):
            raise ParseError("frame is not a JSON object")
        return envelope


def _decode_bytes(data: Union[bytes, bytearray]) -> str:
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"payload is not UTF-8: {e}") from e


def normalize(raw_frame: RawFrame, scheme: Optional[TopicScheme] = None
              ) -> Union[SensorEvent, List[SensorEvent], None]:
    """Normalize one raw frame; None for malformed or unrecognised frames."""
    return MessageNormalizer(scheme).normalize(raw_frame)
