import pytest

from agrolive.core.patterns import ConnectionState, ListenerSubject, StateMachine


@pytest.mark.parametrize("path", [
    [ConnectionState.CONNECTING, ConnectionState.CONNECTED],
    [ConnectionState.CONNECTING, ConnectionState.BACKOFF, ConnectionState.CONNECTING, ConnectionState.DEGRADED],
    [ConnectionState.CONNECTING, ConnectionState.CONNECTED, ConnectionState.DISCONNECTED,
     ConnectionState.CONNECTING],
    [ConnectionState.CONNECTING, ConnectionState.DEGRADED, ConnectionState.IDLE],
])
def test_valid_paths(path):
    machine = StateMachine()
    for state in path:
        assert machine.transition(state)
    assert machine.state is path[-1]


@pytest.mark.parametrize("path,refused", [
    ([], ConnectionState.CONNECTED),
    ([ConnectionState.CONNECTING, ConnectionState.CONNECTED], ConnectionState.CONNECTING),
    ([ConnectionState.CONNECTING, ConnectionState.DEGRADED], ConnectionState.BACKOFF),
])
def test_invalid_transitions_are_refused(path, refused):
    machine = StateMachine()
    for state in path:
        machine.transition(state)
    before = machine.state

    assert machine.transition(refused) is False
    assert machine.state is before


def test_listeners_are_notified_in_order_and_isolated():
    subject = ListenerSubject("test")
    calls = []

    def broken(value):
        raise RuntimeError("listener failure")

    subject.subscribe(lambda value: calls.append(("first", value)))
    subject.subscribe(broken)
    unsubscribe = subject.subscribe(lambda value: calls.append(("last", value)))

    subject.notify(1)
    unsubscribe()
    subject.notify(2)

    assert calls == [("first", 1), ("last", 1), ("first", 2)]
