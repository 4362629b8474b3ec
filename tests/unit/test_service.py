"""
Unit tests for service wiring, run on the in-memory stack.
"""

import io
import re

import pytest

from netstress import READINESS_MARKERS, ServiceConfig, StressService
from netstress.handlers import HttpHandler, TcpMemoryProbeHandler
from netstress.http.response import NOT_FOUND


class TestStartup:
    """Tests for StressService.start()."""

    def test_binds_all_channels(self, fake_service, fake_stack):
        assert set(fake_stack.tcp) == {80, 4243}
        assert set(fake_stack.udp) == {4242, 4243}
        assert fake_service.bound_ports == {
            "http": 80,
            "memory_tcp": 4243,
            "echo": 4242,
            "memory_udp": 4243,
        }

    def test_tcp_factories_build_fresh_handlers(self, fake_stack, fake_service):
        first = fake_stack.tcp[80]()
        second = fake_stack.tcp[80]()

        assert isinstance(first, HttpHandler)
        assert first is not second
        assert isinstance(fake_stack.tcp[4243](), TcpMemoryProbeHandler)

    def test_registers_status_timer(self, fake_service, fake_stack):
        assert len(fake_stack.timers) == 1
        assert fake_stack.timers[0].period == 10.0
        assert fake_service.status_timer is fake_stack.timers[0]

    def test_readiness_markers_in_order(self, fake_service):
        lines = fake_service.stream.getvalue().splitlines()

        assert lines[0] == "*** TEST SERVICE STARTED *** "
        assert lines[1].startswith("Current memory usage: 4194304 b")
        assert lines[2:] == list(READINESS_MARKERS)
        assert READINESS_MARKERS == (
            "Ready to start",
            "Ready for ARP",
            "Ready for UDP",
            "Ready for ICMP",
            "Ready for TCP",
            "Ready to end",
        )

    def test_start_is_idempotent(self, fake_service, fake_stack):
        fake_service.start()

        assert len(fake_stack.timers) == 1
        assert fake_service.stream.getvalue().count("Ready to end") == 1

    def test_run_starts_stack(self, fake_stack):
        service = StressService(stack=fake_stack, stream=io.StringIO(), memory=lambda: 1)

        service.run()

        assert service.started
        assert fake_stack.running

    def test_shutdown_stops_stack(self, fake_service, fake_stack):
        fake_service.shutdown()
        assert fake_stack.shutdown_calls == 1

    def test_invalid_config_rejected(self, fake_stack):
        with pytest.raises(ValueError):
            StressService(ServiceConfig(read_size=0), stack=fake_stack)


class TestEndToEndOnFakeStack:
    """Request/response scenarios through the wired service."""

    def test_page_then_status(self, fake_service, fake_stack):
        request = b"GET / HTTP/1.1\r\n\r\n"
        conn = fake_stack.connect(80)
        conn.deliver(request)
        conn.complete_writes()

        header, body = conn.written
        length = int(re.search(rb"Content-Length: (\d+)", header).group(1))
        assert length == len(body)
        assert conn.closed

        fake_stack.fire_timers()
        out = fake_service.stream.getvalue()
        assert f"Recv: {len(request)} Sent: {len(header) + len(body)}" in out

    def test_counters_shared_across_channels(self, fake_service, fake_stack):
        page = fake_stack.connect(80)
        page.deliver(b"POST /x HTTP/1.1\r\n\r\n")
        page.complete_writes()

        probe = fake_stack.connect(4243)
        probe.deliver(b"m")
        probe.complete_writes()

        fake_stack.udp[4242].receive(b"ping")
        fake_stack.udp[4243].receive(b"memsize")

        assert page.output == NOT_FOUND.encode()
        assert probe.output == b"4194304\n"
        assert fake_service.counters.received == len(b"POST /x HTTP/1.1\r\n\r\n") + 1
        assert fake_service.counters.sent == len(NOT_FOUND) + len(b"4194304\n")

    def test_status_interval_from_config(self, fake_stack):
        service = StressService(
            ServiceConfig(status_interval=2.5),
            stack=fake_stack,
            stream=io.StringIO(),
            memory=lambda: 1,
        )
        service.start()

        assert fake_stack.timers[0].period == 2.5
