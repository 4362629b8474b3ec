"""
=============================================================================
NETSTRESS - ALWAYS-ON NETWORK STACK STRESS SERVICE
=============================================================================

A small service that keeps a network stack busy and observable:

    TCP 80     trivial HTML page ("GET / ") or a fixed 404
    TCP 4243   memory probe, any request -> "<rss bytes>\\n"
    UDP 4242   echo
    UDP 4243   memory probe, "memsize" -> "<rss bytes>"

plus a status block every 10 seconds (stack status, memory usage, bytes
received/sent on the TCP channels) and fixed readiness markers at startup
for test harnesses.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌──────────────────────────────────────────────────────────────────┐
    │  service.StressService       wiring, banner, readiness markers  │
    ├──────────────────────────────────────────────────────────────────┤
    │  handlers/                   per-event protocol logic            │
    │  status.StatusReporter       periodic report                     │
    │  http/response               page header/body, 404               │
    │  core/counters               shared byte counters                │
    ├──────────────────────────────────────────────────────────────────┤
    │  core/stack                  capability interface                │
    │  core/selector_stack         single-threaded OS socket stack     │
    └──────────────────────────────────────────────────────────────────┘

Handlers only see the capability interface, so the same handlers run on
the real selector stack and on the in-memory stack used by the unit tests.

=============================================================================
QUICK START
=============================================================================

    from netstress import StressService, ServiceConfig

    service = StressService(ServiceConfig(host="127.0.0.1", http_port=8080))
    service.run()

or from a shell:

    python -m netstress --host 127.0.0.1 --http-port 8080

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServiceConfig
from .service import StressService, READINESS_MARKERS

__all__ = ["StressService", "ServiceConfig", "READINESS_MARKERS", "__version__"]
