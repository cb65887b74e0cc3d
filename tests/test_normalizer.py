import json

import pytest

from agrolive.mapping import MessageNormalizer, normalize
from agrolive.mapping import normalizer as normalizer_module
from agrolive.mapping.transformations import coerce_number, coerce_power
from agrolive.models.events import ReadingKind, SensorEvent
from agrolive.models.topics import TopicScheme


# =============================================================================
# malformed input
# =============================================================================

@pytest.mark.parametrize("raw", [
    "not json at all",
    b"\xff\xfe\x00",
    "[1, 2, 3]",
    42,
    None,
    {},
    {"topic": "ns/dev1/stream/temp", "payload": "{broken"},
    {"topic": "ns/dev1/stream/temp", "payload": "   "},
    {"topic": "too/short", "payload": "{\"temp\": 20}"},
    {"payload": {"temp": 20}},
    {"topic": "ns/dev1/stream/temp", "payload": "[1,2]"},
    {"topic": "ns/dev1/stream/temp", "payload": json.dumps(json.dumps({"temp": 30}))},
    {"topic": "ns/dev1/stream/temp", "payload": "null"},
    {"topic": "ns/dev1/stream/temp", "payload": "NaN"},
    {"topic": "ns/dev1/stream/temp", "payload": "[1, 2"},
])
def test_malformed_frames_return_none(raw):
    assert normalize(raw) is None


def test_malformed_frame_does_not_replace_previous_reading():
    normalizer = MessageNormalizer()
    good = normalizer.normalize({"topic": "ns/dev1/stream/temp", "payload": "{\"temp\": 21}"})
    junk = normalizer.normalize({"topic": "ns/dev1/stream/temp", "payload": "[1,2]"})

    assert good.value == 21.0
    assert junk is None
    assert normalizer.dropped == 1


def test_dropped_frames_are_counted():
    normalizer = MessageNormalizer()
    normalizer.normalize("garbage")
    normalizer.normalize({"topic": "ns/dev1/stream/temp", "payload": "{broken"})
    assert normalizer.dropped == 2


def test_module_normalize_uses_a_fresh_normalizer_per_call(monkeypatch):
    built = []

    class Recording(MessageNormalizer):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            built.append(self)

    monkeypatch.setattr(normalizer_module, "MessageNormalizer", Recording)

    normalize("garbage")
    normalize("garbage")

    assert len(built) == 2
    assert [n.dropped for n in built] == [1, 1]


@pytest.mark.parametrize("marker", ["ping", "pong"])
def test_keepalive_frames_are_ignored(marker):
    assert normalize({"type": marker}) is None
    assert normalize(json.dumps({"action": marker})) is None


# =============================================================================
# payload shapes
# =============================================================================

def test_nested_string_payload_on_stream_topic():
    event = normalize({"topic": "ns/dev1/stream/temp", "payload": "{\"temp\":\"30\"}"})

    assert isinstance(event, SensorEvent)
    assert event.device_id == "dev1"
    assert event.kind is ReadingKind.TEMPERATURE
    assert event.value == 30.0
    assert event.source_topic == "ns/dev1/stream/temp"


def test_actuator_state_payload_gives_status_and_mode():
    events = normalize({"topic": "ns/dev1/state/motor",
                        "payload": "{\"power\":\"on\",\"mode\":\"auto\"}"})

    assert [(e.kind, e.value) for e in events] == [
        (ReadingKind.PUMP_STATUS, "ON"),
        (ReadingKind.PUMP_MODE, "auto"),
    ]
    assert all(e.device_id == "dev1" for e in events)


def test_three_sensor_keys_become_one_batch_update():
    raw = json.dumps({
        "topic": "protonest/dev1/stream/temp",
        "payload": {"temp": 24, "humidity": "55", "moisture": 33.5, "pumpStatus": "off"},
    })
    event = normalize(raw)

    assert isinstance(event, SensorEvent)
    assert event.kind is ReadingKind.BATCH_UPDATE
    assert event.value == {
        ReadingKind.TEMPERATURE: 24.0,
        ReadingKind.HUMIDITY: 55.0,
        ReadingKind.MOISTURE: 33.5,
        ReadingKind.PUMP_STATUS: "OFF",
    }


def test_two_sensor_keys_become_two_events():
    events = normalize({"deviceId": "dev3", "temperature": 21, "light": 400})

    assert [e.kind for e in events] == [ReadingKind.TEMPERATURE, ReadingKind.LIGHT]


def test_wrapped_sensor_data_uses_envelope_device():
    event = normalize({"type": "sensor_data", "deviceId": "dev9", "data": {"moisture": 41}})

    assert event.device_id == "dev9"
    assert event.kind is ReadingKind.MOISTURE
    assert event.value == 41.0
    assert event.source_topic == ""


def test_scalar_bytes_payload_keyed_by_topic():
    event = normalize({"topic": "protonest/dev1/stream/moisture", "payload": b"42"})

    assert event.kind is ReadingKind.MOISTURE
    assert event.value == 42.0


def test_value_alias_keyed_by_topic():
    event = normalize({"topic": "protonest/dev1/stream/temp", "payload": {"value": "27.5"}})

    assert event.kind is ReadingKind.TEMPERATURE
    assert event.value == 27.5


def test_bare_power_on_state_topic():
    event = normalize({"topic": "protonest/dev1/state/pump", "payload": "off"})

    assert event.kind is ReadingKind.PUMP_STATUS
    assert event.value == "OFF"


def test_json_number_string_payload_keyed_by_topic():
    event = normalize({"topic": "protonest/dev1/stream/light", "payload": "412.5"})

    assert event.kind is ReadingKind.LIGHT
    assert event.value == 412.5


def test_invalid_power_value_falls_through_to_next_key():
    event = normalize({"topic": "protonest/dev1/state/pump", "payload": {"power": None, "status": "on"}})

    assert event.kind is ReadingKind.PUMP_STATUS
    assert event.value == "ON"


def test_non_numeric_reading_keeps_literal_value():
    event = normalize({"topic": "protonest/dev1/stream/moisture", "payload": "{\"moisture\":\"unknown\"}"})

    assert event.kind is ReadingKind.MOISTURE
    assert event.value == "unknown"


def test_epoch_millisecond_timestamp_becomes_iso():
    event = normalize({"topic": "protonest/dev1/stream/temp",
                       "payload": {"temp": 20, "timestamp": 1700000000000}})

    assert event.timestamp.startswith("2023-11-1")


def test_missing_timestamp_uses_receipt_time():
    event = normalize({"topic": "protonest/dev1/stream/temp", "payload": {"temp": 20}})

    assert "T" in event.timestamp


def test_namespace_is_checked_when_scheme_given():
    normalizer = MessageNormalizer(TopicScheme(namespace="protonest"))

    assert normalizer.normalize({"topic": "other/dev1/stream/temp", "payload": "20"}) is None
    assert normalizer.normalize({"topic": "protonest/dev1/stream/temp", "payload": "20"}).value == 20.0


def test_unrecognised_shape_returns_none():
    assert normalize({"topic": "protonest/dev1/stream/temp", "payload": {"foo": "bar"}}) is None


# =============================================================================
# coercion helpers
# =============================================================================

@pytest.mark.parametrize("value,expected", [
    ("30", 30.0),
    (" 12.5 ", 12.5),
    (7, 7.0),
    ("unknown", "unknown"),
    ("nan", "nan"),
    (None, None),
])
def test_coerce_number(value, expected):
    assert coerce_number(value) == expected


@pytest.mark.parametrize("value,expected", [
    ("on", "ON"),
    ("OFF", "OFF"),
    (True, "ON"),
    (0, "OFF"),
    ("1", "ON"),
    ("maybe", None),
])
def test_coerce_power(value, expected):
    assert coerce_power(value) == expected
