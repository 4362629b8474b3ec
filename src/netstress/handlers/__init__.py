"""
Protocol handlers.

This package contains:
- HttpHandler: HTML page or 404 on TCP port 80
- TcpMemoryProbeHandler / UdpMemoryProbeHandler: memory usage on port 4243
- UdpEchoHandler: datagram echo on UDP port 4242

TCP handlers are instantiated once per accepted connection. Datagram
handlers are shared by every datagram on their port.
"""

from .http import HttpHandler, HttpState, REQUEST_MARKER
from .memory_probe import (
    PROBE_ERROR_REPLY,
    PROBE_REQUEST,
    TcpMemoryProbeHandler,
    UdpMemoryProbeHandler,
)
from .echo import UdpEchoHandler

__all__ = [
    "HttpHandler",
    "HttpState",
    "REQUEST_MARKER",
    "PROBE_ERROR_REPLY",
    "PROBE_REQUEST",
    "TcpMemoryProbeHandler",
    "UdpMemoryProbeHandler",
    "UdpEchoHandler",
]
