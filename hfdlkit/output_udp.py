"""Output that sends formatted messages to a remote host as UDP datagrams."""

from __future__ import annotations

import socket
import sys
from typing import Any, Mapping, Optional

from hfdlkit.output import OutputFormat

SUPPORTED_FORMATS = (OutputFormat.TEXT, OutputFormat.BASESTATION, OutputFormat.JSON)

NAME = "udp"
DESCRIPTION = "Output to a remote host via UDP"
OPTIONS = (
    ("address", "Destination host name or IP address (required)"),
    ("port", "Destination UDP port (required)"),
)


class UdpOutput:
    """Sends each message as one datagram; send errors are reported, not retried."""

    def __init__(self, address: str, port: Any):
        self.address = address
        self.port = str(port)
        self._sock: Optional[socket.socket] = None

    @classmethod
    def from_kvargs(cls, kvargs: Mapping[str, str]) -> "UdpOutput":
        """Build an output from ``address`` and ``port`` parameters."""
        address = kvargs.get("address")
        if address is None:
            raise ValueError("output_udp: IP address not specified")
        port = kvargs.get("port")
        if port is None:
            raise ValueError("output_udp: UDP port not specified")
        return cls(address, port)

    def init(self) -> None:
        """Resolve the destination and set up a connected datagram socket."""
        try:
            infos = socket.getaddrinfo(self.address, self.port, type=socket.SOCK_DGRAM)
        except socket.gaierror as exc:
            print(f"output_udp: could not resolve {self.address}: {exc.strerror}", file=sys.stderr)
            raise
        for family, socktype, proto, _, sockaddr in infos:
            try:
                sock = socket.socket(family, socktype, proto)
            except OSError:
                continue
            try:
                sock.connect(sockaddr)
            except OSError:
                sock.close()
                continue
            self._sock = sock
            return
        message = (
            f"output_udp: Could not set up UDP socket to {self.address}:{self.port}: "
            "all addresses failed"
        )
        print(message, file=sys.stderr)
        raise OSError(message)

    def produce(self, fmt: OutputFormat, metadata: Any, msg: Optional[bytes]) -> None:
        """Send ``msg`` as a datagram; messages shorter than 2 octets are skipped."""
        if fmt not in SUPPORTED_FORMATS:
            return
        if msg is None:
            raise ValueError("no message to send")
        if len(msg) < 2:
            return
        if self._sock is None:
            raise RuntimeError("output is not initialized")
        try:
            self._sock.send(bytes(msg))
        except OSError as exc:
            # Fire-and-forget: report the problem but never requeue.
            print(
                f"output_udp({self.address}:{self.port}): send error: {exc.strerror or exc}",
                file=sys.stderr,
            )

    def _close(self) -> None:
        if self._sock is not None:
            self._sock.close()
        self._sock = None

    def handle_shutdown(self) -> None:
        print(f"output_udp({self.address}:{self.port}): shutting down", file=sys.stderr)
        self._close()

    def handle_failure(self) -> None:
        print(
            f"output_udp: can't connect to {self.address}:{self.port}, deactivating output",
            file=sys.stderr,
        )
        self._close()