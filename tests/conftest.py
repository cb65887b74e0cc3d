import asyncio
from typing import Any, List, Optional

import pytest

from agrolive.models.topics import TopicScheme
from agrolive.protocols.base_transport import (
    BaseTransport,
    Credentials,
    Frame,
    FrameType,
    TransportConfig,
    TransportType,
)
from agrolive.services.live_data_service import LiveDataService
from agrolive.services.supervisor import ReconnectConfig, ReconnectionSupervisor


# =============================================================================
# FAKES
# =============================================================================

class FakeTransport(BaseTransport):
    """In-memory transport; connect failures are scripted with ``fail_next``."""

    def __init__(self, config: Optional[TransportConfig] = None):
        super().__init__(config or TransportConfig(TransportType.SIMULATION))
        self.written: List[Frame] = []
        self.failures: List[BaseException] = []
        self.connect_calls = 0
        self.last_credentials: Optional[Credentials] = None

    def fail_next(self, *errors: BaseException) -> None:
        self.failures.extend(errors)

    def _validate_config(self):
        pass

    async def _open_connection(self, credentials: Credentials):
        self.connect_calls += 1
        self.last_credentials = credentials
        if self.failures:
            raise self.failures.pop(0)

    async def _teardown(self):
        pass

    def _write(self, frame: Frame):
        self.written.append(frame)

    # test helpers
    def drop(self, code: int = BaseTransport.ABNORMAL_CLOSE) -> None:
        self._connection_lost(code, "test drop")

    def deliver(self, raw: Any) -> None:
        self._emit_frame(raw)

    def frames_of(self, frame_type: FrameType) -> List[Frame]:
        return [f for f in self.written if f.type is frame_type]


class FakeConnection:
    """Stands in for the supervisor where only is_connected/send matter."""

    def __init__(self, connected: bool = True, accept: bool = True):
        self.connected = connected
        self.accept = accept
        self.sent: List[Frame] = []

    def is_connected(self) -> bool:
        return self.connected

    def send(self, frame: Frame) -> bool:
        if not (self.connected and self.accept):
            return False
        self.sent.append(frame)
        return True

    def frames_of(self, frame_type: FrameType) -> List[Frame]:
        return [f for f in self.sent if f.type is frame_type]


class RecordingSleep:
    """Instant replacement for asyncio.sleep that remembers every delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def scheme() -> TopicScheme:
    return TopicScheme()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def supervisor(transport, sleep) -> ReconnectionSupervisor:
    return ReconnectionSupervisor(transport, ReconnectConfig(base_delay=1.0, max_delay=30.0, max_attempts=5),
                                  sleep=sleep)


@pytest.fixture
def service(transport, scheme, sleep) -> LiveDataService:
    return LiveDataService(transport, scheme=scheme, sleep=sleep)


@pytest.fixture
def offline_connection() -> FakeConnection:
    return FakeConnection(connected=False)
