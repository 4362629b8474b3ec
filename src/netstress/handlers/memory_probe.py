"""
=============================================================================
MEMORY PROBE HANDLERS (TCP and UDP port 4243)
=============================================================================

A private request/reply convention for monitoring: ask the service how much
memory it uses, get back the resident set size in bytes as decimal text.

    TCP:  any bytes            -> b"<rss>\\n"       connection stays open
    UDP:  b"memsize"           -> b"<rss>"          no newline
    UDP:  anything else        -> ProtocolViolationError (strict)
                                  b"error: expected memsize" (lenient)

Both channels use the same port number. TCP and UDP port spaces are
separate, so the two sockets do not collide.

The TCP probe is instrumented with the byte counters, the UDP probe is not.

=============================================================================
"""

import logging
from typing import Callable

from ..core.counters import ByteCounters
from ..core.memory import memory_usage
from ..core.stack import (
    Connection,
    ConnectionHandler,
    DatagramEndpoint,
    DatagramHandler,
    UdpDatagram,
)
from ..errors import ProtocolViolationError

logger = logging.getLogger(__name__)

PROBE_REQUEST = b"memsize"
PROBE_ERROR_REPLY = b"error: expected memsize"

MemoryQuery = Callable[[], int]


class TcpMemoryProbeHandler(ConnectionHandler):
    """Answer every read on one connection with the current memory usage."""

    def __init__(
        self,
        counters: ByteCounters,
        read_size: int = 1024,
        memory: MemoryQuery = memory_usage,
    ):
        self.counters = counters
        self.read_size = read_size
        self.memory = memory

    def on_accept(self, conn: Connection) -> None:
        conn.read(self.read_size)

    def on_read_complete(self, conn: Connection, data: bytes) -> None:
        self.counters.add_received(len(data))
        reply = f"{self.memory()}\n"
        logger.info(f"TCP Mem: Reporting memory size as {reply.strip()} bytes")
        conn.write(reply.encode("ascii"))
        conn.read(self.read_size)

    def on_write_complete(self, conn: Connection, n: int) -> None:
        self.counters.add_sent(n)


class UdpMemoryProbeHandler(DatagramHandler):
    """
    Reply to b"memsize" datagrams with the current memory usage.

    Args:
        strict: Raise ProtocolViolationError on any other payload. When
            False, reply PROBE_ERROR_REPLY and log a warning instead.
        memory: Memory usage query, in bytes.
    """

    def __init__(self, strict: bool = True, memory: MemoryQuery = memory_usage):
        self.strict = strict
        self.memory = memory

    def on_datagram(self, endpoint: DatagramEndpoint, datagram: UdpDatagram) -> None:
        if datagram.payload != PROBE_REQUEST:
            if self.strict:
                raise ProtocolViolationError(
                    "udp-memory-probe", datagram.payload, datagram.source
                )
            logger.warning(
                f"UDP Mem: rejected payload {datagram.payload[:32]!r} "
                f"from {datagram.source_addr}:{datagram.source_port}"
            )
            endpoint.sendto(datagram.source_addr, datagram.source_port, PROBE_ERROR_REPLY)
            return

        reply = str(self.memory())
        logger.info(f"Reporting memory size as {reply} bytes")
        endpoint.sendto(datagram.source_addr, datagram.source_port, reply.encode("ascii"))
