"""
=============================================================================
SELECTOR-DRIVEN NETWORK STACK
=============================================================================

The production implementation of NetworkStack. One thread, one selector,
every socket non-blocking:

    ┌──────────────────────────────────────────────────────────────────┐
    │                        SelectorStack.run()                       │
    │                                                                  │
    │   while running:                                                 │
    │       events = selector.select(timeout=until next timer)         │
    │       for each ready socket:                                     │
    │           listener   -> accept() -> handler.on_accept(conn)      │
    │           connection -> recv()/send() -> handler callbacks       │
    │           udp socket -> recvfrom() -> handler.on_datagram(...)   │
    │           wakeup     -> drain (shutdown() was called)            │
    │       fire due timers                                            │
    └──────────────────────────────────────────────────────────────────┘

Because a single thread runs every callback, handlers can update shared
state (the byte counters, the page color generator) without locking each
other out, and no handler may block.

=============================================================================
TIMERS
=============================================================================

Timers are periodic with a fixed period. After firing, a timer is re-armed
one period after the moment it actually fired. Late firings push every later
firing back; there is no catch-up and no jitter.

=============================================================================
SHUTDOWN
=============================================================================

shutdown() may be called from a signal handler, from another thread, or
from inside a callback. It flips the running flag and writes one byte to a
socketpair registered with the selector, so a select() that is sleeping
until the next timer wakes up immediately.

=============================================================================
"""

import heapq
import itertools
import logging
import selectors
import signal
import socket
import threading
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..errors import StackClosedError
from .connection import TCPConnection
from .stack import (
    ConnectionHandler,
    DatagramEndpoint,
    DatagramHandler,
    HandlerFactory,
    NetworkStack,
    Timer,
    UdpDatagram,
)

logger = logging.getLogger(__name__)

# Largest possible UDP payload
MAX_DATAGRAM = 65535


class PeriodicTimer(Timer):
    """A fixed-period timer owned by a SelectorStack."""

    def __init__(self, period: float, callback: Callable[[], None], deadline: float):
        self.period = period
        self.callback = callback
        self.deadline = deadline
        self.cancelled = False
        self.fired = 0

    def cancel(self) -> None:
        self.cancelled = True


class TCPListener:
    """A listening socket that gives each accepted client its own handler."""

    def __init__(self, stack: "SelectorStack", sock: socket.socket, factory: HandlerFactory):
        self.stack = stack
        self.socket = sock
        self.factory = factory
        self.port = sock.getsockname()[1]

    def handle_events(self, mask: int) -> None:
        # Accept everything that is queued; the listening socket is
        # level-triggered so leftovers would just come back next round.
        while True:
            try:
                client_socket, client_address = self.socket.accept()
            except BlockingIOError:
                return
            except OSError as e:
                logger.error(f"Accept error on port {self.port}: {e}")
                return

            self.stack._accept(client_socket, client_address[:2], self.factory())


class UDPEndpoint(DatagramEndpoint):
    """A bound, non-blocking UDP socket."""

    def __init__(self, sock: socket.socket, handler: DatagramHandler):
        self.socket = sock
        self.handler = handler
        self.port = sock.getsockname()[1]
        self.datagrams_received = 0
        self.datagrams_sent = 0

    def sendto(self, addr: str, port: int, data: bytes) -> None:
        if self.socket.fileno() == -1:
            raise StackClosedError(f"UDP port {self.port} is closed")
        try:
            self.socket.sendto(data, (addr, port))
        except OSError as e:
            # Datagrams are best-effort; a full buffer or unreachable
            # peer loses this reply only.
            logger.warning(f"UDP {self.port}: send to {addr}:{port} failed: {e}")
            return
        self.datagrams_sent += 1

    def handle_events(self, mask: int) -> None:
        while True:
            try:
                payload, source = self.socket.recvfrom(MAX_DATAGRAM)
            except BlockingIOError:
                return
            except OSError as e:
                # ICMP port-unreachable from an earlier reply shows up here
                logger.debug(f"UDP {self.port}: receive error: {e}")
                return

            self.datagrams_received += 1
            self.handler.on_datagram(self, UdpDatagram(source[0], source[1], payload))


class _Wakeup:
    """Self-pipe used to interrupt select() from shutdown()."""

    def __init__(self, selector: selectors.BaseSelector):
        self.reader, self.writer = socket.socketpair()
        self.reader.setblocking(False)
        self.writer.setblocking(False)
        selector.register(self.reader, selectors.EVENT_READ, self)

    def wake(self) -> None:
        try:
            self.writer.send(b"\0")
        except OSError:
            pass  # Buffer full means a wakeup is already pending

    def handle_events(self, mask: int) -> None:
        try:
            while self.reader.recv(1024):
                pass
        except BlockingIOError:
            pass

    def close(self) -> None:
        self.reader.close()
        self.writer.close()


class SelectorStack(NetworkStack):
    """
    NetworkStack over operating system sockets.

    Args:
        host: Address every socket binds to.
        backlog: Accept queue length for TCP listeners.
        install_signal_handlers: Stop on SIGINT/SIGTERM while run() is
            active. Ignored when run() is not on the main thread.

    Example:
        stack = SelectorStack("127.0.0.1")
        port = stack.listen_tcp(0, MyHandler)
        stack.on_timer(10.0, report)
        stack.run()       # blocks until stack.shutdown()
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        backlog: int = 128,
        install_signal_handlers: bool = True,
    ):
        self.host = host
        self.backlog = backlog
        self.install_signal_handlers = install_signal_handlers

        self._selector = selectors.DefaultSelector()
        self._wakeup = _Wakeup(self._selector)
        self._listeners: List[TCPListener] = []
        self._udp: List[UDPEndpoint] = []
        self._connections: Set[TCPConnection] = set()
        self._timers: List[Tuple[float, int, PeriodicTimer]] = []
        self._timer_seq = itertools.count()
        self._running = False
        self._stop_requested = False
        self._closed = False
        self._stopped = threading.Event()
        self._original_handlers: Dict[int, object] = {}
        self.accepted_total = 0

    # =========================================================================
    # BINDING
    # =========================================================================

    def listen_tcp(self, port: int, factory: HandlerFactory) -> int:
        self._check_open()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        try:
            sock.bind((self.host, port))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind TCP {self.host}:{port}: {e}")
            raise
        sock.listen(self.backlog)
        sock.setblocking(False)

        listener = TCPListener(self, sock, factory)
        self._selector.register(sock, selectors.EVENT_READ, listener)
        self._listeners.append(listener)
        logger.info(f"TCP listening on {self.host}:{listener.port}")
        return listener.port

    def bind_udp(self, port: int, handler: DatagramHandler) -> UDPEndpoint:
        self._check_open()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, port))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind UDP {self.host}:{port}: {e}")
            raise
        sock.setblocking(False)

        endpoint = UDPEndpoint(sock, handler)
        self._selector.register(sock, selectors.EVENT_READ, endpoint)
        self._udp.append(endpoint)
        logger.info(f"UDP bound on {self.host}:{endpoint.port}")
        return endpoint

    def on_timer(self, period: float, callback: Callable[[], None]) -> PeriodicTimer:
        if period <= 0:
            raise ValueError(f"timer period must be > 0, got {period}")
        self._check_open()
        timer = PeriodicTimer(period, callback, time.monotonic() + period)
        self._push_timer(timer)
        self._wakeup.wake()
        return timer

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> str:
        tcp_ports = ", ".join(str(listener.port) for listener in self._listeners) or "-"
        udp_ports = ", ".join(str(endpoint.port) for endpoint in self._udp) or "-"
        return (
            f"LISTENING TCP PORTS: {tcp_ports}\n"
            f"BOUND UDP PORTS: {udp_ports}\n"
            f"OPEN CONNECTIONS: {len(self._connections)}\n"
            f"ACCEPTED CONNECTIONS: {self.accepted_total}"
        )

    # =========================================================================
    # EVENT LOOP
    # =========================================================================

    def run(self) -> None:
        """
        Process events until shutdown() is called.

        Exceptions raised by handlers are not caught here: they end the
        loop, every socket is closed, and the exception reaches the caller.
        """
        self._check_open()
        # shutdown() may already have been requested from another thread
        self._running = not self._stop_requested
        self._stopped.clear()
        self._setup_signals()
        logger.debug("Event loop started")
        try:
            while self._running:
                events = self._selector.select(self._select_timeout())
                for key, mask in events:
                    key.data.handle_events(mask)
                    if not self._running:
                        break
                self._fire_due_timers()
                self._expire_lingering()
        finally:
            self._running = False
            self._cleanup()

    def shutdown(self) -> None:
        """Stop the event loop. Idempotent and thread-safe."""
        if self._running:
            logger.info("Shutting down network stack...")
        self._stop_requested = True
        self._running = False
        if not self._closed:
            self._wakeup.wake()

    def close(self) -> None:
        """Release every socket without running the loop."""
        if not self._closed:
            self._cleanup()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Wait until run() has returned and sockets are closed."""
        return self._stopped.wait(timeout)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _check_open(self) -> None:
        if self._closed:
            raise StackClosedError("network stack is closed")

    def _accept(self, client_socket: socket.socket, address, handler: ConnectionHandler) -> None:
        conn = TCPConnection(
            client_socket,
            address,
            handler,
            self._selector,
            on_closed=self._connections.discard,
        )
        self._connections.add(conn)
        self.accepted_total += 1
        logger.debug(f"[{conn.id}] Accepted connection from {address[0]}:{address[1]}")
        handler.on_accept(conn)

    def _push_timer(self, timer: PeriodicTimer) -> None:
        heapq.heappush(self._timers, (timer.deadline, next(self._timer_seq), timer))

    def _select_timeout(self) -> Optional[float]:
        while self._timers and self._timers[0][2].cancelled:
            heapq.heappop(self._timers)
        deadlines = [conn.linger_deadline for conn in self._connections
                     if conn.linger_deadline is not None]
        if self._timers:
            deadlines.append(self._timers[0][0])
        if not deadlines:
            return None
        return max(0.0, min(deadlines) - time.monotonic())

    def _fire_due_timers(self) -> None:
        now = time.monotonic()
        while self._running and self._timers and self._timers[0][0] <= now:
            _, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            fired_at = time.monotonic()
            timer.fired += 1
            timer.callback()
            if not timer.cancelled:
                timer.deadline = fired_at + timer.period
                self._push_timer(timer)

    def _expire_lingering(self) -> None:
        now = time.monotonic()
        for conn in list(self._connections):
            conn.expire_linger(now)

    def _setup_signals(self) -> None:
        if not self.install_signal_handlers:
            return
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _cleanup(self) -> None:
        self._restore_signals()

        for conn in list(self._connections):
            conn.abort()
        self._connections.clear()

        for listener in self._listeners:
            listener.socket.close()
        for endpoint in self._udp:
            endpoint.socket.close()

        self._wakeup.close()
        self._selector.close()
        self._closed = True
        self._stopped.set()
        logger.info("Network stack stopped")
