"""UDP echo (port 4242): every datagram goes back to its sender unchanged."""

import logging

from ..core.stack import DatagramEndpoint, DatagramHandler, UdpDatagram

logger = logging.getLogger(__name__)


class UdpEchoHandler(DatagramHandler):
    """Echo payloads verbatim. Not instrumented by the byte counters."""

    def on_datagram(self, endpoint: DatagramEndpoint, datagram: UdpDatagram) -> None:
        logger.debug(
            f"Echo {len(datagram.payload)} bytes to "
            f"{datagram.source_addr}:{datagram.source_port}"
        )
        endpoint.sendto(datagram.source_addr, datagram.source_port, bytes(datagram.payload))
