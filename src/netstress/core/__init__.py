"""
Core networking components.

This package contains:
- stack: The capability interface between the service and a network stack
- selector_stack: Single-threaded NetworkStack over OS sockets
- connection: Non-blocking TCP connection used by the selector stack
- counters: Process-wide byte counters
- memory: Process memory usage query
"""

from .counters import ByteCounters, CounterSnapshot
from .memory import memory_usage
from .stack import (
    Connection,
    ConnectionHandler,
    DatagramEndpoint,
    DatagramHandler,
    HandlerFactory,
    NetworkStack,
    Timer,
    UdpDatagram,
)
from .connection import TCPConnection, ConnectionState
from .selector_stack import SelectorStack

__all__ = [
    "ByteCounters",
    "CounterSnapshot",
    "memory_usage",
    "Connection",
    "ConnectionHandler",
    "DatagramEndpoint",
    "DatagramHandler",
    "HandlerFactory",
    "NetworkStack",
    "Timer",
    "UdpDatagram",
    "TCPConnection",
    "ConnectionState",
    "SelectorStack",
]
