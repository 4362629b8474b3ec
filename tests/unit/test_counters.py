"""
Unit tests for the byte counters.
"""

import threading

import pytest

from netstress.core.counters import ByteCounters, CounterSnapshot


class TestByteCounters:
    """Tests for ByteCounters."""

    def test_starts_at_zero(self, counters: ByteCounters):
        assert counters.snapshot() == CounterSnapshot(received=0, sent=0)

    def test_totals_equal_sum_of_completions(self, counters: ByteCounters):
        """Test that totals are exactly the sum of reported counts."""
        reads = [18, 1024, 3, 0, 512]
        writes = [240, 310, 44]

        for n in reads:
            counters.add_received(n)
        for n in writes:
            counters.add_sent(n)

        assert counters.received == sum(reads)
        assert counters.sent == sum(writes)

    def test_add_returns_new_total(self, counters: ByteCounters):
        assert counters.add_received(5) == 5
        assert counters.add_received(7) == 12
        assert counters.add_sent(3) == 3

    def test_never_decreases(self, counters: ByteCounters):
        counters.add_sent(10)

        with pytest.raises(ValueError):
            counters.add_sent(-1)
        with pytest.raises(ValueError):
            counters.add_received(-5)

        assert counters.sent == 10
        assert counters.received == 0

    def test_snapshot_is_immutable_copy(self, counters: ByteCounters):
        counters.add_received(4)
        snapshot = counters.snapshot()
        counters.add_received(4)

        assert snapshot.received == 4
        with pytest.raises(AttributeError):
            snapshot.received = 100

    def test_concurrent_increments(self, counters: ByteCounters):
        """Test that increments from several threads are not lost."""
        def work():
            for _ in range(1000):
                counters.add_received(1)
                counters.add_sent(2)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counters.received == 8000
        assert counters.sent == 16000
