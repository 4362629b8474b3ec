"""
Unit tests for the status reporter.
"""

import io

from netstress.status import StatusReporter, memory_line


class BrokenStream(io.StringIO):
    def write(self, text):
        raise OSError("stdout closed")


class TestStatusReporter:
    """Tests for StatusReporter."""

    def test_render(self, fake_stack, counters):
        counters.add_received(18)
        counters.add_sent(300)
        reporter = StatusReporter(fake_stack, counters, memory=lambda: 24117248)

        text = reporter.render()

        assert text.startswith("<Service> TCP STATUS:\nFAKE STACK OK")
        assert "Current memory usage: 24117248 b, (24.117248 MB)" in text
        assert text.endswith("Recv: 18 Sent: 300\n")

    def test_report_writes_to_stream(self, fake_stack, counters):
        stream = io.StringIO()
        reporter = StatusReporter(fake_stack, counters, stream, memory=lambda: 1)

        reporter.report()
        reporter.report()

        assert stream.getvalue().count("<Service> TCP STATUS:") == 2
        assert reporter.reports == 2

    def test_reflects_counters_at_report_time(self, fake_stack, counters):
        stream = io.StringIO()
        reporter = StatusReporter(fake_stack, counters, stream, memory=lambda: 1)

        reporter.report()
        counters.add_received(5)
        reporter.report()

        assert "Recv: 0 Sent: 0" in stream.getvalue()
        assert "Recv: 5 Sent: 0" in stream.getvalue()

    def test_print_failure_is_not_raised(self, fake_stack, counters, caplog):
        reporter = StatusReporter(fake_stack, counters, BrokenStream(), memory=lambda: 1)

        reporter.report()

        assert reporter.reports == 0
        assert "Failed to print status report" in caplog.text


def test_memory_line():
    assert memory_line(1500000) == "Current memory usage: 1500000 b, (1.500000 MB) "
