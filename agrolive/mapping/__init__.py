"""Raw frame normalization pipeline."""

from .base_mapper import (
    FrameContext,
    NormalizationPipeline,
    PayloadDecoder,
    ShapeMatcher,
)
from .transformations import (
    NestedStringPayloadDecoder,
    ObjectPayloadDecoder,
    WrappedDataDecoder,
    FlatEnvelopeDecoder,
    ScalarPayloadDecoder,
    BatchUpdateMatcher,
    SensorFieldMatcher,
    ActuatorStateMatcher,
    coerce_number,
)
from .normalizer import MessageNormalizer, build_pipeline, normalize

__all__ = [
    # Base classes
    'FrameContext',
    'NormalizationPipeline',
    'PayloadDecoder',
    'ShapeMatcher',

    # Decoders
    'NestedStringPayloadDecoder',
    'ObjectPayloadDecoder',
    'WrappedDataDecoder',
    'FlatEnvelopeDecoder',
    'ScalarPayloadDecoder',

    # Matchers
    'BatchUpdateMatcher',
    'SensorFieldMatcher',
    'ActuatorStateMatcher',
    'coerce_number',

    # Entry points
    'MessageNormalizer',
    'build_pipeline',
    'normalize',
]
