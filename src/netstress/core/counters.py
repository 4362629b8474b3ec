"""
=============================================================================
BYTE COUNTERS
=============================================================================

Process-wide totals of bytes received and sent by the instrumented TCP
channels (HTTP page and TCP memory probe).

The counters are created once when the service starts, are never reset,
and only ever grow. Every read delivery and every write completion on an
instrumented channel must go through add_received() / add_sent().

The service runs its handlers on a single event-loop thread, so the lock is
uncontended in practice. It keeps snapshot() consistent when tests or
embedding code touch the counters from another thread.

=============================================================================
"""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterSnapshot:
    """Point-in-time copy of the counters."""

    received: int
    sent: int


class ByteCounters:
    """
    Monotonic received/sent byte totals.

    Example:
        counters = ByteCounters()
        counters.add_received(18)
        counters.add_sent(240)
        counters.snapshot()   # CounterSnapshot(received=18, sent=240)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._received = 0
        self._sent = 0

    @property
    def received(self) -> int:
        return self._received

    @property
    def sent(self) -> int:
        return self._sent

    def add_received(self, n: int) -> int:
        """
        Record n bytes delivered by a read completion.

        Returns:
            The new received total.

        Raises:
            ValueError: If n is negative.
        """
        if n < 0:
            raise ValueError(f"byte count must be >= 0, got {n}")
        with self._lock:
            self._received += n
            return self._received

    def add_sent(self, n: int) -> int:
        """
        Record n bytes reported by a write completion.

        Returns:
            The new sent total.

        Raises:
            ValueError: If n is negative.
        """
        if n < 0:
            raise ValueError(f"byte count must be >= 0, got {n}")
        with self._lock:
            self._sent += n
            return self._sent

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(received=self._received, sent=self._sent)

    def __repr__(self) -> str:
        return f"ByteCounters(received={self._received}, sent={self._sent})"
