"""
=============================================================================
NON-BLOCKING TCP CONNECTION
=============================================================================

Wraps one accepted client socket for the selector-driven stack. It turns raw
readiness events from the selector into the four callbacks the service's
handlers understand:

    socket readable, read armed     -> on_read_complete(conn, data)
    socket readable, EOF            -> on_disconnect(conn, "peer closed")
    queued write fully flushed      -> on_write_complete(conn, len(write))
    recv()/send() raised            -> on_disconnect(conn, "<error>")

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    OPEN ──close()──► CLOSING ──writes flushed──► SHUT_WR, drain ──peer EOF──► CLOSED
      │                                                       └───linger timeout──► ▲
      └──────────────────────── send/recv error ────────────────────────────────────┘

close() does not throw away queued writes: a handler that writes its reply
and immediately closes still gets its reply delivered. Once the outbox is
empty the write side is shut down and input is drained until the peer
closes or LINGER_TIMEOUT passes. A socket closed with unread input sends a
reset, which would destroy the reply the peer has not read yet. An error on
the socket drops whatever is still queued.

=============================================================================
ONE READ AT A TIME
=============================================================================

read(max_bytes) arms exactly one read. When it fires the read is disarmed;
the handler must call read() again to get more. While no read is armed,
incoming bytes are drained and discarded so a chatty peer cannot wedge the
selector, and EOF is still noticed and reported.

=============================================================================
"""

import logging
import selectors
import socket
import time
import uuid
from collections import deque
from enum import Enum
from typing import Callable, Deque, Optional

from ..errors import StackClosedError
from .stack import Address, Connection, ConnectionHandler

logger = logging.getLogger(__name__)

# Bytes pulled per recv() when draining a connection nobody is reading.
DRAIN_CHUNK = 4096

# Seconds a half-closed connection waits for the peer to close its side.
LINGER_TIMEOUT = 2.0


class ConnectionState(Enum):
    OPEN = "open"
    CLOSING = "closing"     # close() requested, writes still queued
    CLOSED = "closed"


class TCPConnection(Connection):
    """
    A non-blocking client connection registered with a selector.

    Args:
        sock: The accepted client socket.
        address: Peer (ip, port).
        handler: Callbacks for this connection's service.
        selector: The stack's selector.
        on_closed: Called once with this connection after the socket closes,
            so the stack can drop it from its bookkeeping.
    """

    def __init__(
        self,
        sock: socket.socket,
        address: Address,
        handler: ConnectionHandler,
        selector: selectors.BaseSelector,
        on_closed: Optional[Callable[["TCPConnection"], None]] = None,
    ):
        self.id = str(uuid.uuid4())[:8]
        self.peer = address
        self.socket = sock
        self.handler = handler
        self.state = ConnectionState.OPEN
        self.created_at = time.time()
        self.bytes_received = 0
        self.bytes_sent = 0

        self._selector = selector
        self._on_closed = on_closed
        self._pending_read: Optional[int] = None
        self._outbox: Deque[bytearray] = deque()
        self._outbox_sizes: Deque[int] = deque()
        self._eof = False
        self.linger_deadline: Optional[float] = None
        self._disconnect_reported = False
        self._registered_events = 0

        self.socket.setblocking(False)
        self._update_interest()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def pending_writes(self) -> int:
        return len(self._outbox)

    # =========================================================================
    # CAPABILITIES USED BY HANDLERS
    # =========================================================================

    def read(self, max_bytes: int) -> None:
        if self.state != ConnectionState.OPEN:
            raise StackClosedError(f"[{self.id}] read on {self.state.value} connection")
        if max_bytes < 1:
            raise ValueError(f"max_bytes must be >= 1, got {max_bytes}")
        self._pending_read = max_bytes

    def write(self, data: bytes) -> None:
        if self.state != ConnectionState.OPEN:
            raise StackClosedError(f"[{self.id}] write on {self.state.value} connection")
        if not data:
            return
        self._outbox.append(bytearray(data))
        self._outbox_sizes.append(len(data))
        self._update_interest()

    def close(self) -> None:
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING
        self._pending_read = None
        if self._outbox:
            # Let the queued reply go out first
            self._update_interest()
            return
        self._half_close()

    def abort(self) -> None:
        """Close immediately, dropping queued writes. Used at stack teardown."""
        self._outbox.clear()
        self._outbox_sizes.clear()
        if not self.closed:
            self._close_now()

    def expire_linger(self, now: float) -> bool:
        """Close a half-closed connection whose peer never finished. Returns True if closed."""
        if self.linger_deadline is None or self.closed or now < self.linger_deadline:
            return False
        logger.debug(f"[{self.id}] Linger timeout, closing")
        self._close_now()
        return True

    # =========================================================================
    # SELECTOR EVENTS
    # =========================================================================

    def handle_events(self, mask: int) -> None:
        """Dispatch selector readiness for this connection."""
        if mask & selectors.EVENT_READ and not self.closed:
            self._handle_readable()
        if mask & selectors.EVENT_WRITE and not self.closed:
            self._handle_writable()

    def _handle_readable(self) -> None:
        armed = self._pending_read
        try:
            data = self.socket.recv(armed if armed is not None else DRAIN_CHUNK)
        except BlockingIOError:
            return
        except OSError as e:
            self._fail(e)
            return

        if not data:
            self._eof = True
            if self.state == ConnectionState.CLOSING:
                self._close_now()
                return
            self._update_interest()
            self._report_disconnect("peer closed")
            return

        if armed is None:
            logger.debug(f"[{self.id}] Discarded {len(data)} unsolicited bytes")
            return

        self._pending_read = None
        self.bytes_received += len(data)
        self.handler.on_read_complete(self, data)

    def _handle_writable(self) -> None:
        while self._outbox:
            buf = self._outbox[0]
            try:
                sent = self.socket.send(buf)
            except BlockingIOError:
                break
            except OSError as e:
                self._fail(e)
                return

            self.bytes_sent += sent
            del buf[:sent]
            if buf:
                # Partial send, wait for the next writable event
                break

            self._outbox.popleft()
            size = self._outbox_sizes.popleft()
            self.handler.on_write_complete(self, size)
            if self.closed:
                return

        if not self._outbox and self.state == ConnectionState.CLOSING:
            self._half_close()
        else:
            self._update_interest()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _fail(self, error: OSError) -> None:
        logger.debug(f"[{self.id}] Socket error: {error}")
        self._outbox.clear()
        self._outbox_sizes.clear()
        self._eof = True
        if self.state == ConnectionState.CLOSING:
            self._close_now()
            return
        self._report_disconnect(str(error) or error.__class__.__name__)
        if not self.closed:
            self._close_now()

    def _half_close(self) -> None:
        if self._eof:
            self._close_now()
            return
        if self.linger_deadline is not None:
            return
        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            self._close_now()
            return
        self.linger_deadline = time.monotonic() + LINGER_TIMEOUT
        self._update_interest()

    def _report_disconnect(self, reason: str) -> None:
        if self._disconnect_reported:
            return
        self._disconnect_reported = True
        logger.debug(f"[{self.id}] Disconnect: {reason}")
        self.handler.on_disconnect(self, reason)

    def _update_interest(self) -> None:
        events = 0
        lingering = self.linger_deadline is not None
        if not self._eof and (self.state == ConnectionState.OPEN or lingering):
            events |= selectors.EVENT_READ
        if self._outbox:
            events |= selectors.EVENT_WRITE

        if events == self._registered_events:
            return
        if self._registered_events == 0:
            self._selector.register(self.socket, events, self)
        elif events == 0:
            self._selector.unregister(self.socket)
        else:
            self._selector.modify(self.socket, events, self)
        self._registered_events = events

    def _close_now(self) -> None:
        if self._registered_events:
            try:
                self._selector.unregister(self.socket)
            except (KeyError, ValueError):
                pass  # Selector already closed
            self._registered_events = 0

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        self._pending_read = None
        logger.debug(
            f"[{self.id}] Closed after {self.age:.3f}s "
            f"(in={self.bytes_received}, out={self.bytes_sent})"
        )
        if self._on_closed is not None:
            self._on_closed(self)

    def __repr__(self) -> str:
        return f"TCPConnection(id={self.id}, peer={self.peer[0]}:{self.peer[1]}, state={self.state.value})"
