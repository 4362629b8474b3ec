"""
=============================================================================
NETWORK STACK CAPABILITY INTERFACE
=============================================================================

The service never talks to sockets directly. It depends on a network stack
through the small set of capabilities defined here:

    NetworkStack.listen_tcp(port, factory)   -> bound port
    NetworkStack.bind_udp(port, handler)     -> DatagramEndpoint
    NetworkStack.on_timer(period, callback)  -> Timer
    NetworkStack.status()                    -> text

    Connection.read(max_bytes)      arm one read
    Connection.write(data)          queue bytes, completion reported later
    Connection.close()

The stack drives the service by calling back into handlers:

    ConnectionHandler.on_accept(conn)
    ConnectionHandler.on_read_complete(conn, data)
    ConnectionHandler.on_write_complete(conn, n)
    ConnectionHandler.on_disconnect(conn, reason)

    DatagramHandler.on_datagram(endpoint, datagram)

=============================================================================
EVENT-DRIVEN, NOT BLOCKING
=============================================================================

A handler never waits. "Read the request" means: arm a read, return, and
handle the bytes when on_read_complete() is called. All callbacks arrive on
the stack's single event thread, one at a time, so handlers need no locks.

The production stack is SelectorStack (selector_stack.py). Tests drive the
handlers with an in-memory stack that implements the same interface.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Tuple


Address = Tuple[str, int]


@dataclass(frozen=True)
class UdpDatagram:
    """One received datagram. Consumed inside the read callback."""

    source_addr: str
    source_port: int
    payload: bytes

    @property
    def source(self) -> Address:
        return (self.source_addr, self.source_port)


class Connection(ABC):
    """Handle to one accepted TCP connection, owned by the stack."""

    id: str
    peer: Address

    @abstractmethod
    def read(self, max_bytes: int) -> None:
        """Arm a single read of up to max_bytes."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Queue data for sending. Completion arrives via on_write_complete."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Safe to call more than once."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once close() has run."""


class ConnectionHandler(ABC):
    """
    Per-service TCP callbacks.

    The stack creates one handler per accepted connection (see
    HandlerFactory), so the handler instance is that connection's state
    machine. The Connection passed to each callback is always the same one.
    """

    @abstractmethod
    def on_accept(self, conn: Connection) -> None:
        pass

    @abstractmethod
    def on_read_complete(self, conn: Connection, data: bytes) -> None:
        pass

    @abstractmethod
    def on_write_complete(self, conn: Connection, n: int) -> None:
        pass

    def on_disconnect(self, conn: Connection, reason: str) -> None:
        """Default: close the connection."""
        conn.close()


# Builds the handler for one freshly accepted connection
HandlerFactory = Callable[[], ConnectionHandler]


class DatagramEndpoint(ABC):
    """A bound UDP socket."""

    port: int

    @abstractmethod
    def sendto(self, addr: str, port: int, data: bytes) -> None:
        pass


class DatagramHandler(ABC):
    """Callback for datagrams arriving on a bound UDP port."""

    @abstractmethod
    def on_datagram(self, endpoint: DatagramEndpoint, datagram: UdpDatagram) -> None:
        pass


class Timer(ABC):
    """A recurring timer registered with the stack."""

    period: float

    @abstractmethod
    def cancel(self) -> None:
        pass


class NetworkStack(ABC):
    """The external collaborator that owns sockets, timers and the event loop."""

    @abstractmethod
    def listen_tcp(self, port: int, factory: HandlerFactory) -> int:
        """Listen on port; each accepted connection gets factory()."""

    @abstractmethod
    def bind_udp(self, port: int, handler: DatagramHandler) -> DatagramEndpoint:
        """Bind a UDP port and route datagrams to handler."""

    @abstractmethod
    def on_timer(self, period: float, callback: Callable[[], None]) -> Timer:
        """Call callback every period seconds, first after one period."""

    @abstractmethod
    def status(self) -> str:
        """Human-readable status of the stack."""

    @abstractmethod
    def run(self) -> None:
        """Process events until shutdown() is called."""

    @abstractmethod
    def shutdown(self) -> None:
        pass
