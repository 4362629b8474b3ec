"""
=============================================================================
SERVICE ERRORS
=============================================================================

Exception types raised by the stress service.

=============================================================================
ERROR TAXONOMY
=============================================================================

    Malformed HTTP request      -> NOT an error, answered with a 404
    Stack failure (reset, EOF)  -> on_disconnect(reason), connection closed
    Memory probe bad payload    -> ProtocolViolationError (fatal)
    Using a closed connection   -> StackClosedError

Only ProtocolViolationError is allowed to escape the event loop. It stops
the service on purpose: the UDP memory probe has no defined behavior for any
payload other than "memsize", and silently continuing would hide a broken
client from the test harness.

=============================================================================
"""

from typing import Optional, Tuple


class NetstressError(Exception):
    """Base class for every error raised by this package."""


class ProtocolViolationError(NetstressError):
    """
    A request broke a channel's precondition.

    Attributes:
        channel: Name of the channel ("udp-memory-probe").
        payload: The offending payload.
        peer: (address, port) of the sender, if known.
    """

    def __init__(
        self,
        channel: str,
        payload: bytes,
        peer: Optional[Tuple[str, int]] = None,
    ):
        self.channel = channel
        self.payload = payload
        self.peer = peer
        source = f" from {peer[0]}:{peer[1]}" if peer else ""
        super().__init__(f"{channel}: unexpected payload {payload!r}{source}")


class StackClosedError(NetstressError):
    """Raised when an operation targets a closed connection or stack."""
