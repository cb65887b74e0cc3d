import json

import pytest

from agrolive.core.exceptions import CommandError, CommandReason, ConfigurationError
from agrolive.models.events import ReadingKind
from agrolive.protocols.base_transport import FrameType
from agrolive.services.command_publisher import CommandPublisher


@pytest.fixture
def publisher(connection, scheme):
    return CommandPublisher(connection, scheme, qos=1)


@pytest.mark.asyncio
async def test_offline_command_raises_and_sends_nothing(offline_connection, scheme):
    publisher = CommandPublisher(offline_connection, scheme)

    with pytest.raises(CommandError) as exc:
        await publisher.send_command("dev1", "pumpStatus", "ON")

    assert exc.value.reason is CommandReason.OFFLINE
    assert offline_connection.sent == []


@pytest.mark.asyncio
async def test_pump_status_command_frame(publisher, connection):
    result = await publisher.send_command("dev1", ReadingKind.PUMP_STATUS, "ON")

    frame, = connection.sent
    assert frame.type is FrameType.PUBLISH
    assert frame.topic == "protonest/dev1/state/pump"
    assert json.loads(frame.payload) == {"power": "on"}
    assert frame.qos == 1
    assert result.payload == {"power": "on"}
    assert result.topic == frame.topic


@pytest.mark.asyncio
async def test_pump_mode_command_is_lowercased(publisher, connection):
    await publisher.send_command("dev1", "pumpMode", "AUTO")

    assert json.loads(connection.sent[0].payload) == {"mode": "auto"}


@pytest.mark.asyncio
@pytest.mark.parametrize("kind,value", [
    ("pumpStatus", "sideways"),
    ("pumpMode", "turbo"),
    ("temperature", 20),
    ("bogus", "ON"),
])
async def test_invalid_commands_are_rejected(publisher, connection, kind, value):
    with pytest.raises(CommandError) as exc:
        await publisher.send_command("dev1", kind, value)

    assert exc.value.reason is CommandReason.REJECTED
    assert connection.sent == []


@pytest.mark.asyncio
async def test_invalid_device_is_rejected(publisher):
    with pytest.raises(CommandError) as exc:
        await publisher.send_command("dev/1", "pumpStatus", "OFF")
    assert exc.value.reason is CommandReason.REJECTED


@pytest.mark.asyncio
async def test_set_pump_sends_combined_payload(publisher, connection):
    await publisher.set_pump("dev1", True, mode="manual")

    assert json.loads(connection.sent[0].payload) == {"power": "on", "mode": "manual"}
    assert publisher.sent == 1


@pytest.mark.asyncio
async def test_failed_write_counts_as_offline(connection, scheme):
    connection.accept = False
    publisher = CommandPublisher(connection, scheme)

    with pytest.raises(CommandError) as exc:
        await publisher.send_command("dev1", "pumpStatus", "OFF")
    assert exc.value.reason is CommandReason.OFFLINE


def test_invalid_qos(connection):
    with pytest.raises(ConfigurationError):
        CommandPublisher(connection, qos=3)
