"""Output that publishes formatted messages on a ZeroMQ PUB socket."""

from __future__ import annotations

import sys
from enum import Enum
from typing import Any, Mapping, Optional, Union

import zmq

from hfdlkit.output import OUTPUT_QUEUE_HWM_DEFAULT, OutputFormat

SUPPORTED_FORMATS = (OutputFormat.TEXT, OutputFormat.BASESTATION, OutputFormat.JSON)

NAME = "zmq"
DESCRIPTION = "Output to a ZeroMQ publisher socket (as a server or a client)"
OPTIONS = (
    ("mode", "Socket mode: client or server (required)"),
    ("endpoint", "Socket endpoint: tcp://address:port (required)"),
)


class ZmqMode(Enum):
    """Whether the PUB socket binds (server) or connects (client)."""

    SERVER = "server"
    CLIENT = "client"


class ZmqOutput:
    """Publishes each message on a PUB socket."""

    def __init__(
        self,
        endpoint: str,
        mode: Union[ZmqMode, str],
        send_hwm: int = OUTPUT_QUEUE_HWM_DEFAULT,
    ):
        self.endpoint = endpoint
        self.mode = ZmqMode(mode)
        self.send_hwm = send_hwm
        self._ctx: Optional[zmq.Context] = None
        self._sock: Optional[zmq.Socket] = None

    @classmethod
    def from_kvargs(cls, kvargs: Mapping[str, str]) -> "ZmqOutput":
        """Build an output from ``endpoint`` and ``mode`` parameters."""
        endpoint = kvargs.get("endpoint")
        if endpoint is None:
            raise ValueError("output_zmq: endpoint not specified")
        mode = kvargs.get("mode")
        if mode is None:
            raise ValueError("output_zmq: mode not specified")
        if mode not in (ZmqMode.SERVER.value, ZmqMode.CLIENT.value):
            raise ValueError(
                f"output_zmq: mode '{mode}' is invalid; must be either 'client' or 'server'"
            )
        return cls(endpoint, ZmqMode(mode))

    @property
    def _action(self) -> str:
        return "bind" if self.mode is ZmqMode.SERVER else "connect"

    def init(self) -> None:
        """Create the PUB socket and bind or connect it to the endpoint."""
        self._ctx = zmq.Context()
        self._sock = self._ctx.socket(zmq.PUB)
        try:
            if self.mode is ZmqMode.SERVER:
                self._sock.bind(self.endpoint)
            else:
                self._sock.connect(self.endpoint)
        except zmq.ZMQError as exc:
            print(f"output_zmq({self.endpoint}): {self._action} failed: {exc}", file=sys.stderr)
            raise OSError(exc.errno, str(exc)) from exc
        try:
            self._sock.setsockopt(zmq.SNDHWM, self.send_hwm)
        except zmq.ZMQError as exc:
            print(
                f"output_zmq({self.endpoint}): could not set ZMQ_SNDHWM option for socket: {exc}",
                file=sys.stderr,
            )
            raise OSError(exc.errno, str(exc)) from exc

    def produce(self, fmt: OutputFormat, metadata: Any, msg: Optional[bytes]) -> None:
        """Publish ``msg``; messages shorter than 2 octets are skipped.

        Raises :class:`OSError` when the send fails.
        """
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
        except zmq.ZMQError as exc:
            print(f"output_zmq({self.endpoint}): zmq_send error: {exc}", file=sys.stderr)
            raise OSError(exc.errno, str(exc)) from exc

    def _close(self, linger: Optional[int] = None) -> None:
        if self._sock is not None:
            self._sock.close(linger=linger)
            self._sock = None
        if self._ctx is not None:
            self._ctx.term()
            self._ctx = None

    def handle_shutdown(self) -> None:
        print(f"output_zmq({self.endpoint}): shutting down", file=sys.stderr)
        self._close()

    def handle_failure(self) -> None:
        print(
            f"output_zmq({self.endpoint}): could not {self._action}, deactivating output",
            file=sys.stderr,
        )
        self._close(linger=0)