"""Output that streams formatted messages to a remote host over TCP."""

from __future__ import annotations

import socket
import sys
import time
from typing import Any, Mapping, Optional

from hfdlkit.output import OutputFormat

MIN_RECONNECT_INTERVAL = 10
"""Seconds to wait after a failed connection attempt before trying again."""

SOCKET_SEND_TIMEOUT = 5
"""Timeout in seconds for socket operations."""

SUPPORTED_FORMATS = (OutputFormat.TEXT, OutputFormat.BASESTATION, OutputFormat.JSON)

NAME = "tcp"
DESCRIPTION = "Output to a remote host via TCP"
OPTIONS = (
    ("address", "Destination host name or IP address (required)"),
    ("port", "Destination TCP port (required)"),
)


class TcpOutput:
    """Sends messages over a TCP connection, reconnecting after failures."""

    def __init__(self, address: str, port: Any):
        self.address = address
        self.port = str(port)
        self.next_reconnect_time = 0.0
        self._sock: Optional[socket.socket] = None

    @classmethod
    def from_kvargs(cls, kvargs: Mapping[str, str]) -> "TcpOutput":
        """Build an output from ``address`` and ``port`` parameters."""
        address = kvargs.get("address")
        if address is None:
            raise ValueError("output_tcp: address not specified")
        port = kvargs.get("port")
        if port is None:
            raise ValueError("output_tcp: port not specified")
        return cls(address, port)

    @property
    def connected(self) -> bool:
        """Tell whether a connection is currently established."""
        return self._sock is not None

    def _log(self, text: str) -> None:
        print(f"output_tcp({self.address}:{self.port}): {text}", file=sys.stderr)

    def _schedule_reconnect(self) -> None:
        self.next_reconnect_time = time.time() + MIN_RECONNECT_INTERVAL

    def reconnect(self) -> bool:
        """Try to connect unless a retry is not yet due; return True on success."""
        if self.next_reconnect_time > time.time():
            return False
        self._log("connecting...")
        try:
            infos = socket.getaddrinfo(self.address, self.port, type=socket.SOCK_STREAM)
        except socket.gaierror as exc:
            self._log(f"could not resolve address: {exc.strerror}")
            self._schedule_reconnect()
            return False
        for family, socktype, proto, _, sockaddr in infos:
            try:
                sock = socket.socket(family, socktype, proto)
            except OSError:
                continue
            sock.settimeout(SOCKET_SEND_TIMEOUT)
            try:
                sock.connect(sockaddr)
            except OSError:
                sock.close()
                continue
            self._sock = sock
            self._log("connection established")
            self.next_reconnect_time = 0.0
            return True
        self._log("could not connect: all addresses failed")
        self._schedule_reconnect()
        return False

    def init(self) -> None:
        """Attempt the first connection; failure is not fatal and is retried later."""
        self.next_reconnect_time = 0.0
        self.reconnect()

    def produce(self, fmt: OutputFormat, metadata: Any, msg: Optional[bytes]) -> None:
        """Send ``msg``; messages are dropped while no connection can be made.

        Raises :class:`OSError` when sending fails, so that the message is retried.
        """
        if self._sock is None and not self.reconnect():
            return
        if fmt not in SUPPORTED_FORMATS:
            return
        if msg is None:
            raise ValueError("no message to send")
        if not msg:
            return
        try:
            self._sock.sendall(bytes(msg))
        except OSError as exc:
            self._log(f"send error: {exc.strerror or exc}")
            self.handle_shutdown()
            self.next_reconnect_time = 0.0
            raise

    def _close(self) -> None:
        if self._sock is not None:
            self._sock.close()
        self._sock = None

    def handle_shutdown(self) -> None:
        self._close()
        self._log("connection closed")

    def handle_failure(self) -> None:
        self._log("could not connect, deactivating output")
        self._close()