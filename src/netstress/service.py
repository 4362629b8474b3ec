"""
=============================================================================
STRESS SERVICE
=============================================================================

Wires the four network channels and the status reporter onto a network
stack, prints the startup banner and readiness markers, and runs the stack.

=============================================================================
STARTUP SEQUENCE
=============================================================================

    1. bind TCP http_port          -> HttpHandler per connection
    2. bind TCP memory_tcp_port    -> TcpMemoryProbeHandler per connection
    3. bind UDP echo_port          -> UdpEchoHandler
    4. bind UDP memory_udp_port    -> UdpMemoryProbeHandler
    5. register StatusReporter every status_interval seconds
    6. print banner, memory usage, then the readiness markers

The readiness markers are synchronization points for external test
harnesses. They are printed verbatim, in this order, and only after every
socket is bound, so a harness that sees "Ready to end" can start sending.

=============================================================================
"""

import functools
import logging
import random
import sys
from typing import Callable, Dict, Optional, TextIO

from .config import ServiceConfig
from .core.counters import ByteCounters
from .core.memory import memory_usage
from .core.selector_stack import SelectorStack
from .core.stack import NetworkStack, Timer
from .handlers import (
    HttpHandler,
    TcpMemoryProbeHandler,
    UdpEchoHandler,
    UdpMemoryProbeHandler,
)
from .status import StatusReporter, memory_line

logger = logging.getLogger(__name__)

STARTED_BANNER = "*** TEST SERVICE STARTED *** "

READINESS_MARKERS = (
    "Ready to start",
    "Ready for ARP",
    "Ready for UDP",
    "Ready for ICMP",
    "Ready for TCP",
    "Ready to end",
)


class StressService:
    """
    The always-on stress service.

    Args:
        config: Service configuration. Defaults to ServiceConfig().
        stack: Network stack to run on. Defaults to a SelectorStack bound
            to config.host.
        stream: Where the banner, markers and status reports go (stdout).
        memory: Memory usage query shared by probes and reporter.
        rng: Page color generator for the HTTP channel.

    Example:
        service = StressService(ServiceConfig(http_port=8080))
        service.run()     # blocks until SIGINT/SIGTERM
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        stack: Optional[NetworkStack] = None,
        stream: Optional[TextIO] = None,
        memory: Callable[[], int] = memory_usage,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or ServiceConfig()
        self.config.validate()
        self.stack = stack or SelectorStack(self.config.host, self.config.backlog)
        self.stream = stream
        self.memory = memory
        self.rng = rng

        self.counters = ByteCounters()
        self.reporter = StatusReporter(self.stack, self.counters, stream, memory)
        self.bound_ports: Dict[str, int] = {}
        self.status_timer: Optional[Timer] = None
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Bind every channel and announce readiness. Does not block."""
        if self._started:
            return
        cfg = self.config

        self.bound_ports["http"] = self.stack.listen_tcp(
            cfg.http_port,
            functools.partial(HttpHandler, self.counters, cfg.read_size, self.rng),
        )
        self.bound_ports["memory_tcp"] = self.stack.listen_tcp(
            cfg.memory_tcp_port,
            functools.partial(TcpMemoryProbeHandler, self.counters, cfg.read_size, self.memory),
        )
        self.bound_ports["echo"] = self.stack.bind_udp(cfg.echo_port, UdpEchoHandler()).port
        self.bound_ports["memory_udp"] = self.stack.bind_udp(
            cfg.memory_udp_port,
            UdpMemoryProbeHandler(strict=cfg.strict_memory_probe, memory=self.memory),
        ).port

        self.status_timer = self.stack.on_timer(cfg.status_interval, self.reporter.report)
        self._started = True

        logger.info(
            "Service started: "
            + ", ".join(f"{name}={port}" for name, port in self.bound_ports.items())
        )
        self._announce()

    def run(self) -> None:
        """Start (if needed) and process events until shutdown()."""
        self.start()
        self.stack.run()

    def shutdown(self) -> None:
        self.stack.shutdown()

    def _announce(self) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        lines = [STARTED_BANNER, memory_line(self.memory()), *READINESS_MARKERS]
        stream.write("\n".join(lines) + "\n")
        stream.flush()
