"""
pytest configuration and fixtures.
"""

import io
import random
import threading
from typing import Callable, Dict, Generator, List, Optional, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from netstress import ServiceConfig, StressService
from netstress.core import (
    ByteCounters,
    Connection,
    ConnectionHandler,
    DatagramEndpoint,
    DatagramHandler,
    NetworkStack,
    SelectorStack,
    Timer,
    UdpDatagram,
)

FAKE_MEMORY = 4194304


# =============================================================================
# IN-MEMORY STACK
# =============================================================================

class FakeConnection(Connection):
    """Connection whose events are fired by the test."""

    def __init__(self, handler: ConnectionHandler, peer=("10.0.0.2", 50000), conn_id="fake"):
        self.id = conn_id
        self.peer = peer
        self.handler = handler
        self.armed_reads: List[int] = []
        self.pending_writes: List[bytes] = []
        self.written: List[bytes] = []
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def read(self, max_bytes: int) -> None:
        self.armed_reads.append(max_bytes)

    def write(self, data: bytes) -> None:
        self.pending_writes.append(bytes(data))

    def close(self) -> None:
        self.close_calls += 1

    # Test drivers

    def deliver(self, data: bytes) -> None:
        self.handler.on_read_complete(self, data)

    def complete_writes(self) -> None:
        while self.pending_writes:
            data = self.pending_writes.pop(0)
            self.written.append(data)
            self.handler.on_write_complete(self, len(data))

    def disconnect(self, reason: str = "peer closed") -> None:
        self.handler.on_disconnect(self, reason)

    @property
    def output(self) -> bytes:
        return b"".join(self.written)


class FakeEndpoint(DatagramEndpoint):
    def __init__(self, port: int, handler: DatagramHandler):
        self.port = port
        self.handler = handler
        self.sent: List[Tuple[str, int, bytes]] = []

    def sendto(self, addr: str, port: int, data: bytes) -> None:
        self.sent.append((addr, port, bytes(data)))

    def receive(self, payload: bytes, source=("10.0.0.2", 40000)) -> None:
        self.handler.on_datagram(self, UdpDatagram(source[0], source[1], payload))


class FakeTimer(Timer):
    def __init__(self, period: float, callback: Callable[[], None]):
        self.period = period
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeStack(NetworkStack):
    """NetworkStack that binds nothing; the test plays the network."""

    def __init__(self):
        self.tcp: Dict[int, Callable[[], ConnectionHandler]] = {}
        self.udp: Dict[int, FakeEndpoint] = {}
        self.timers: List[FakeTimer] = []
        self.running = False
        self.shutdown_calls = 0
        self._next_port = 50000

    def _port(self, port: int) -> int:
        if port == 0:
            self._next_port += 1
            return self._next_port
        return port

    def listen_tcp(self, port, factory) -> int:
        port = self._port(port)
        self.tcp[port] = factory
        return port

    def bind_udp(self, port, handler) -> FakeEndpoint:
        port = self._port(port)
        endpoint = FakeEndpoint(port, handler)
        self.udp[port] = endpoint
        return endpoint

    def on_timer(self, period, callback) -> FakeTimer:
        timer = FakeTimer(period, callback)
        self.timers.append(timer)
        return timer

    def status(self) -> str:
        return "FAKE STACK OK"

    def run(self) -> None:
        self.running = True

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.running = False

    def connect(self, port: int, peer=("10.0.0.2", 50000)) -> FakeConnection:
        conn = FakeConnection(self.tcp[port](), peer)
        conn.handler.on_accept(conn)
        return conn

    def fire_timers(self) -> None:
        for timer in self.timers:
            if not timer.cancelled:
                timer.callback()


@pytest.fixture
def counters() -> ByteCounters:
    return ByteCounters()


@pytest.fixture
def rng() -> random.Random:
    """Deterministic page color generator."""
    return random.Random(1234)


@pytest.fixture
def fake_memory() -> int:
    """Memory usage reported by the fake memory query."""
    return FAKE_MEMORY


@pytest.fixture
def fake_stack() -> FakeStack:
    return FakeStack()


@pytest.fixture
def fake_service(fake_stack: FakeStack, rng: random.Random):
    """Service started on the in-memory stack, output captured."""
    stream = io.StringIO()
    service = StressService(
        ServiceConfig(),
        stack=fake_stack,
        stream=stream,
        memory=lambda: FAKE_MEMORY,
        rng=rng,
    )
    service.start()
    return service


# =============================================================================
# LOOPBACK SERVICE
# =============================================================================

class ServiceThread:
    """Runs a StressService on a real SelectorStack in a background thread."""

    def __init__(self, service: StressService):
        self.service = service
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def ports(self) -> Dict[str, int]:
        return self.service.bound_ports

    def start(self):
        """Bind all ports, then start the event loop in a background thread."""
        self.service.start()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        try:
            self.service.stack.run()
        except BaseException as e:
            self.error = e

    def join(self, timeout: float = 5.0) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def stop(self):
        self.service.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def start_service() -> Generator[Callable[..., ServiceThread], None, None]:
    """
    Factory for running services on loopback with OS-assigned ports.

    Keyword arguments override ServiceConfig fields. The service output is
    captured in runner.service.stream.
    """
    runners: List[ServiceThread] = []

    def factory(**overrides) -> ServiceThread:
        options = dict(
            host="127.0.0.1",
            http_port=0,
            echo_port=0,
            memory_tcp_port=0,
            memory_udp_port=0,
            log_level="WARNING",
        )
        options.update(overrides)
        stack = SelectorStack("127.0.0.1", install_signal_handlers=False)
        service = StressService(ServiceConfig(**options), stack=stack, stream=io.StringIO())
        runner = ServiceThread(service)
        runner.start()
        runners.append(runner)
        return runner

    yield factory

    for runner in runners:
        runner.stop()


@pytest.fixture
def live_service(start_service) -> ServiceThread:
    """A running service with default settings."""
    return start_service()


@pytest.fixture
def conn_factory() -> Callable[..., FakeConnection]:
    """Build FakeConnections around a handler: conn_factory(handler)."""
    return FakeConnection
