"""
Unit tests for the UDP echo handler.
"""

import pytest

from netstress.handlers.echo import UdpEchoHandler


@pytest.mark.parametrize("payload", [
    b"ping",
    b"",
    bytes(range(256)),
    b"x" * 1400,
])
def test_echo_is_byte_identical(fake_stack, payload):
    endpoint = fake_stack.bind_udp(4242, UdpEchoHandler())

    endpoint.receive(payload, source=("192.168.1.50", 54321))

    assert endpoint.sent == [("192.168.1.50", 54321, payload)]


def test_echo_does_not_touch_counters(fake_service, fake_stack):
    endpoint = fake_stack.udp[4242]

    endpoint.receive(b"ping")

    assert fake_service.counters.received == 0
    assert fake_service.counters.sent == 0
