import pytest

from agrolive.core.exceptions import BrokerConnectionError, ConfigurationError, ConnectionReason
from agrolive.core.patterns import ConnectionState
from agrolive.protocols.base_transport import Frame, FrameType
from agrolive.services.supervisor import ReconnectConfig, ReconnectionSupervisor


def network_error():
    return BrokerConnectionError(ConnectionReason.NETWORK, "refused")


# =============================================================================
# ReconnectConfig
# =============================================================================

def test_delays_grow_geometrically_and_cap():
    cfg = ReconnectConfig(base_delay=1.0, max_delay=10.0, max_attempts=8)
    assert [cfg.delay_for(n) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


def test_jitter_adds_fraction_of_delay():
    cfg = ReconnectConfig(base_delay=2.0, max_delay=30.0, jitter=0.5)
    assert cfg.delay_for(2, rng=lambda: 1.0) == 6.0
    assert cfg.delay_for(2, rng=lambda: 0.0) == 4.0


@pytest.mark.parametrize("kwargs", [
    {"base_delay": 0},
    {"base_delay": 5, "max_delay": 1},
    {"max_attempts": 0},
    {"jitter": 1.5},
])
def test_invalid_reconnect_config(kwargs):
    with pytest.raises(ConfigurationError):
        ReconnectConfig(**kwargs)


# =============================================================================
# connect / backoff / degraded
# =============================================================================

@pytest.mark.asyncio
async def test_start_connects(supervisor, transport):
    assert supervisor.status == "idle"

    state = await supervisor.start()

    assert state is ConnectionState.CONNECTED
    assert supervisor.status == "connected"
    assert supervisor.is_connected()
    assert transport.connect_calls == 1


@pytest.mark.asyncio
async def test_backoff_then_connect(supervisor, transport, sleep):
    transport.fail_next(network_error(), network_error(), OSError("unreachable"))

    state = await supervisor.start()

    assert state is ConnectionState.CONNECTED
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert transport.connect_calls == 4
    assert supervisor.attempts == 0


@pytest.mark.asyncio
async def test_max_attempts_leads_to_degraded(transport, sleep):
    supervisor = ReconnectionSupervisor(
        transport, ReconnectConfig(base_delay=1.0, max_delay=5.0, max_attempts=5), sleep=sleep)
    transport.fail_next(*[network_error() for _ in range(5)])

    state = await supervisor.start()

    assert state is ConnectionState.DEGRADED
    assert supervisor.status == "offline"
    assert sleep.delays == [1.0, 2.0, 4.0, 5.0]
    assert transport.connect_calls == 5
    assert supervisor.last_error.reason is ConnectionReason.NETWORK


@pytest.mark.asyncio
async def test_auth_failure_is_not_retried(supervisor, transport, sleep):
    transport.fail_next(BrokerConnectionError(ConnectionReason.AUTH, "bad token"))

    state = await supervisor.start()

    assert state is ConnectionState.DEGRADED
    assert transport.connect_calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_degraded_is_terminal_until_retry(supervisor, transport):
    transport.fail_next(BrokerConnectionError(ConnectionReason.AUTH, "bad token"))
    await supervisor.start()

    # start() does not leave DEGRADED on its own
    assert await supervisor.start() is ConnectionState.DEGRADED
    assert transport.connect_calls == 1

    assert await supervisor.retry() is ConnectionState.CONNECTED
    assert transport.connect_calls == 2


@pytest.mark.asyncio
async def test_retry_outside_degraded_is_ignored(supervisor, transport):
    await supervisor.start()
    assert await supervisor.retry() is ConnectionState.CONNECTED
    assert transport.connect_calls == 1


# =============================================================================
# drops and hooks
# =============================================================================

@pytest.mark.asyncio
async def test_abrupt_close_reconnects_and_rearms(supervisor, transport, sleep):
    rearms = []
    lost = []
    supervisor.add_rearm_hook(lambda: rearms.append(supervisor.state))
    supervisor.add_link_lost_hook(lambda: lost.append(True))
    await supervisor.start()

    transport.drop()
    assert supervisor.state is ConnectionState.DISCONNECTED
    assert lost == [True]

    await supervisor.join()

    assert supervisor.state is ConnectionState.CONNECTED
    assert transport.connect_calls == 2
    assert rearms == [ConnectionState.CONNECTED, ConnectionState.CONNECTED]
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_normal_close_never_reconnects(supervisor, transport):
    await supervisor.start()

    transport.drop(code=transport.NORMAL_CLOSE)
    await supervisor.join()

    assert supervisor.state is ConnectionState.IDLE
    assert transport.connect_calls == 1


@pytest.mark.asyncio
async def test_rearm_hooks_run_before_listeners(supervisor):
    order = []
    supervisor.add_listener(lambda state: order.append(("listener", state)))
    supervisor.add_rearm_hook(lambda: order.append(("rearm", None)))

    await supervisor.start()

    assert order == [
        ("listener", ConnectionState.CONNECTING),
        ("rearm", None),
        ("listener", ConnectionState.CONNECTED),
    ]


@pytest.mark.asyncio
async def test_failing_hook_does_not_block_connect(supervisor):
    supervisor.add_rearm_hook(lambda: 1 / 0)
    assert await supervisor.start() is ConnectionState.CONNECTED


# =============================================================================
# send / stop
# =============================================================================

@pytest.mark.asyncio
async def test_send_only_while_connected(supervisor, transport):
    frame = Frame(FrameType.SUBSCRIBE, "protonest/dev1/stream/temp")

    assert supervisor.send(frame) is False
    await supervisor.start()
    assert supervisor.send(frame) is True
    assert transport.written == [frame]


@pytest.mark.asyncio
async def test_stop_closes_without_reconnect(supervisor, transport):
    states = []
    await supervisor.start()
    supervisor.add_listener(states.append)

    await supervisor.stop()

    assert supervisor.state is ConnectionState.IDLE
    assert not transport.is_open
    assert states == [ConnectionState.IDLE]
    assert transport.connect_calls == 1


@pytest.mark.asyncio
async def test_can_start_again_after_stop(supervisor, transport):
    await supervisor.start()
    await supervisor.stop()

    assert await supervisor.start() is ConnectionState.CONNECTED
    assert transport.connect_calls == 2
