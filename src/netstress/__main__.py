"""
=============================================================================
NETSTRESS CLI ENTRY POINT
=============================================================================

    # Harness defaults (ports 80/4242/4243, needs root for port 80)
    python -m netstress

    # Unprivileged
    python -m netstress --host 127.0.0.1 --http-port 8080

    # Faster status reports, verbose logs
    python -m netstress --status-interval 2 --log-level DEBUG

    # Answer bad memory probes instead of stopping
    python -m netstress --lenient-probe

CLI arguments override NETSTRESS_* environment variables, which override
the defaults in ServiceConfig.

=============================================================================
EXIT STATUS
=============================================================================

    0    stopped by SIGINT/SIGTERM
    1    startup failed (bad config, port in use, ...)
    70   a memory probe precondition was violated (EX_SOFTWARE)

=============================================================================
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .config import LOG_LEVELS, ServiceConfig, setup_logging
from .errors import ProtocolViolationError
from .service import StressService

logger = logging.getLogger("netstress")

EXIT_PROTOCOL_VIOLATION = 70


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netstress",
        description="Always-on HTTP / UDP echo / memory probe service for network stack load tests",
    )

    # NETWORK ARGUMENTS

    parser.add_argument("--host", "-H", help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--http-port", type=int, help="TCP port of the HTML page (default: 80)")
    parser.add_argument("--echo-port", type=int, help="UDP echo port (default: 4242)")
    parser.add_argument(
        "--memory-port",
        type=int,
        help="TCP and UDP memory probe port (default: 4243)",
    )

    # BEHAVIOR ARGUMENTS

    parser.add_argument(
        "--status-interval",
        type=float,
        help="Seconds between status reports (default: 10)",
    )
    parser.add_argument(
        "--lenient-probe",
        action="store_true",
        help="Reply with an error to bad UDP memory probes instead of exiting",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)",
    )

    # META ARGUMENTS

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"netstress {__version__}",
    )
    return parser


def config_from_args(args: argparse.Namespace, base: ServiceConfig) -> ServiceConfig:
    """Overlay the arguments that were given on top of base."""
    overrides = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.http_port is not None:
        overrides["http_port"] = args.http_port
    if args.echo_port is not None:
        overrides["echo_port"] = args.echo_port
    if args.memory_port is not None:
        overrides["memory_tcp_port"] = args.memory_port
        overrides["memory_udp_port"] = args.memory_port
    if args.status_interval is not None:
        overrides["status_interval"] = args.status_interval
    if args.lenient_probe:
        overrides["strict_memory_probe"] = False
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    return replace(base, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args, ServiceConfig.from_env())
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level)

    try:
        service = StressService(config)
        service.run()
    except ProtocolViolationError as e:
        logger.critical(f"Stopping on protocol violation: {e}")
        return EXIT_PROTOCOL_VIOLATION
    except OSError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
