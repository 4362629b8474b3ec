"""
=============================================================================
HTTP PAGE HANDLER (TCP port 80)
=============================================================================

One instance per accepted connection. The first read decides a single
response, then the connection closes once it is flushed:

    ┌──────────────────┐  read complete   ┌───────────┐  last write   ┌────────┐
    │ AWAITING_REQUEST │ ───────────────► │ RESPONDED │ ────────────► │ closed │
    └──────────────────┘                  └───────────┘   complete    └────────┘

    first chunk contains b"GET / "   -> header write, then body write
    anything else                    -> NOT_FOUND write

=============================================================================
NO REASSEMBLY
=============================================================================

Only the bytes of the first read completion are inspected. A valid GET whose
request line is split across two TCP segments gets a 404. Load generators
send the request line in one segment, so this does not show up in practice,
and keeping it makes the channel's cost per request constant.

Bytes that arrive after the first read are counted as received and
otherwise ignored, until close() stops reading.

=============================================================================
"""

import logging
import random
from enum import Enum
from typing import Optional

from ..core.counters import ByteCounters
from ..core.stack import Connection, ConnectionHandler
from ..http.response import NOT_FOUND, page_response

logger = logging.getLogger(__name__)

REQUEST_MARKER = b"GET / "

_NOT_FOUND_BYTES = NOT_FOUND.encode("ascii")


class HttpState(Enum):
    AWAITING_REQUEST = "awaiting_request"
    RESPONDED = "responded"


class HttpHandler(ConnectionHandler):
    """
    Serve the HTML page or a 404 on one connection.

    Args:
        counters: Shared byte counters.
        read_size: Maximum bytes inspected for the request.
        rng: Page color generator, the shared one by default.
    """

    def __init__(
        self,
        counters: ByteCounters,
        read_size: int = 1024,
        rng: Optional[random.Random] = None,
    ):
        self.counters = counters
        self.read_size = read_size
        self.rng = rng
        self.state = HttpState.AWAITING_REQUEST
        self.outstanding_writes = 0

    def on_accept(self, conn: Connection) -> None:
        conn.read(self.read_size)

    def on_read_complete(self, conn: Connection, data: bytes) -> None:
        self.counters.add_received(len(data))
        if self.state is HttpState.AWAITING_REQUEST:
            self._respond(conn, data)
        conn.read(self.read_size)

    def _respond(self, conn: Connection, data: bytes) -> None:
        self.state = HttpState.RESPONDED
        if REQUEST_MARKER in data:
            header, body = page_response(self.rng)
            self.outstanding_writes = 2
            conn.write(header)
            conn.write(body)
            logger.debug(f"[{conn.id}] 200, {len(body)} byte page")
        else:
            self.outstanding_writes = 1
            conn.write(_NOT_FOUND_BYTES)
            logger.debug(f"[{conn.id}] 404")

    def on_write_complete(self, conn: Connection, n: int) -> None:
        self.counters.add_sent(n)
        self.outstanding_writes -= 1
        if self.outstanding_writes == 0:
            # Connection: close
            conn.close()

    def on_disconnect(self, conn: Connection, reason: str) -> None:
        logger.debug(f"[{conn.id}] HTTP peer gone ({reason}) in state {self.state.value}")
        conn.close()
