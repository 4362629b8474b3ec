"""
=============================================================================
SERVICE CONFIGURATION
=============================================================================

Centralized configuration for the stress service.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments
       └── python -m netstress --http-port 8080

    2. Environment variables
       └── NETSTRESS_HTTP_PORT=8080 python -m netstress

    3. Defaults in ServiceConfig
       └── the well-known ports 80 / 4242 / 4243

=============================================================================
PORTS
=============================================================================

    TCP 80     HTML page
    TCP 4243   memory probe
    UDP 4242   echo
    UDP 4243   memory probe

Port 0 asks the OS for a free port; tests use it so they can run in
parallel and without root.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServiceConfig:
    """
    Configuration for the stress service.

    =========================================================================
    EXAMPLES
    =========================================================================

    Test harness (the defaults):
        ServiceConfig()

    Unprivileged local run:
        ServiceConfig(
            host="127.0.0.1",
            http_port=8080,
            status_interval=2.0,
            log_level="DEBUG",
        )

    =========================================================================
    """

    # NETWORK SETTINGS

    host: str = "0.0.0.0"
    """Address every socket binds to."""

    http_port: int = 80
    """TCP port of the HTML page."""

    echo_port: int = 4242
    """UDP port of the echo service."""

    memory_tcp_port: int = 4243
    """TCP port of the memory probe."""

    memory_udp_port: int = 4243
    """UDP port of the memory probe. Same number as the TCP probe on purpose."""

    backlog: int = 128
    """Accept queue length for TCP listeners."""

    read_size: int = 1024
    """
    Bytes requested per read on TCP channels. Also the most the HTTP
    channel ever inspects for the request marker.
    """

    # BEHAVIOR

    status_interval: float = 10.0
    """Seconds between status reports."""

    strict_memory_probe: bool = True
    """
    True: a UDP memory probe payload other than "memsize" stops the service.
    False: answer it with an explicit error reply and keep going.
    """

    # LOGGING

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "ServiceConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        NETSTRESS_HOST              Bind address (default: 0.0.0.0)
        NETSTRESS_HTTP_PORT         HTML page TCP port (default: 80)
        NETSTRESS_ECHO_PORT         Echo UDP port (default: 4242)
        NETSTRESS_MEMORY_PORT       Memory probe TCP+UDP port (default: 4243)
        NETSTRESS_STATUS_INTERVAL   Status report period (default: 10)
        NETSTRESS_STRICT_PROBE      "0" for lenient probe (default: 1)
        NETSTRESS_LOG_LEVEL         Logging level (default: INFO)

        =====================================================================
        """
        env = os.environ if environ is None else environ
        memory_port = int(env.get("NETSTRESS_MEMORY_PORT", "4243"))
        return cls(
            host=env.get("NETSTRESS_HOST", "0.0.0.0"),
            http_port=int(env.get("NETSTRESS_HTTP_PORT", "80")),
            echo_port=int(env.get("NETSTRESS_ECHO_PORT", "4242")),
            memory_tcp_port=memory_port,
            memory_udp_port=memory_port,
            status_interval=float(env.get("NETSTRESS_STATUS_INTERVAL", "10")),
            strict_memory_probe=_env_bool(env.get("NETSTRESS_STRICT_PROBE", "1")),
            log_level=env.get("NETSTRESS_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting.
        """
        for name in ("http_port", "echo_port", "memory_tcp_port", "memory_udp_port"):
            port = getattr(self, name)
            if not 0 <= port < 65536:
                raise ValueError(f"Invalid {name}: {port}. Must be 0-65535.")

        if self.read_size < 1:
            raise ValueError("read_size must be >= 1")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.status_interval <= 0:
            raise ValueError("status_interval must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level}")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger and the netstress logger level."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("netstress").setLevel(numeric)
