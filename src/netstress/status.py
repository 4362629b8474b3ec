"""
=============================================================================
STATUS REPORTER
=============================================================================

Every status_interval seconds the service prints one block:

    <Service> TCP STATUS:
    LISTENING TCP PORTS: 80, 4243
    BOUND UDP PORTS: 4242, 4243
    OPEN CONNECTIONS: 2
    ACCEPTED CONNECTIONS: 1187
    Current memory usage: 24117248 b, (24.117248 MB)
    Recv: 21366 Sent: 470130

It goes to stdout (not the log) because test harnesses scrape it. A failure
to print is logged and the next period simply tries again.

=============================================================================
"""

import logging
import sys
from typing import Callable, Optional, TextIO

from .core.counters import ByteCounters
from .core.memory import format_megabytes, memory_usage
from .core.stack import NetworkStack

logger = logging.getLogger(__name__)


def memory_line(n: int) -> str:
    return f"Current memory usage: {n} b, ({format_megabytes(n)} MB) "


class StatusReporter:
    """
    Periodic stack/memory/counter report.

    Args:
        stack: Source of the stack status text.
        counters: Shared byte counters.
        stream: Output stream, stdout when None.
        memory: Memory usage query, in bytes.
    """

    def __init__(
        self,
        stack: NetworkStack,
        counters: ByteCounters,
        stream: Optional[TextIO] = None,
        memory: Callable[[], int] = memory_usage,
    ):
        self.stack = stack
        self.counters = counters
        self.stream = stream
        self.memory = memory
        self.reports = 0

    def render(self) -> str:
        snapshot = self.counters.snapshot()
        return (
            f"<Service> TCP STATUS:\n{self.stack.status()} \n"
            f"{memory_line(self.memory())}\n"
            f"Recv: {snapshot.received} Sent: {snapshot.sent}\n"
        )

    def report(self) -> None:
        """Print one status block. Registered as the stack's timer callback."""
        stream = self.stream if self.stream is not None else sys.stdout
        try:
            stream.write(self.render())
            stream.flush()
        except (OSError, ValueError):
            logger.exception("Failed to print status report")
            return
        self.reports += 1
