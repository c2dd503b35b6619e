"""Formatters, output instances and their delivery queues."""

from __future__ import annotations

import copy
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol

DEFAULT_OUTPUT = "decoded:text:file:path=-"
"""Default output specification: decoded text written to standard output."""

OUTPUT_QUEUE_HWM_DEFAULT = 1000
OUTPUT_QUEUE_HWM_NONE = 0
"""High water mark value that disables queue overflow checks."""

RETRY_DELAY = 2.0
"""Seconds to wait after a failed delivery before trying again."""


class FormatterInputType(IntEnum):
    """Kind of data fed into a formatter."""

    UNKNOWN = 0
    DECODED_FRAME = 1
    RAW_FRAME = 2

    @property
    def label(self) -> Optional[str]:
        entry = _INTYPE_NAMES.get(self)
        return entry[0] if entry else None

    @property
    def description(self) -> Optional[str]:
        entry = _INTYPE_NAMES.get(self)
        return entry[1] if entry else None


_INTYPE_NAMES = {
    FormatterInputType.DECODED_FRAME: ("decoded", "Output decoded frames"),
    FormatterInputType.RAW_FRAME: ("raw", "Output undecoded HFDL frames as raw bytes"),
}


class OutputFormat(IntEnum):
    """Format of the data handed to outputs."""

    UNKNOWN = 0
    TEXT = 1
    BASESTATION = 2
    JSON = 3

    @property
    def label(self) -> Optional[str]:
        return _FORMAT_NAMES.get(self)


_FORMAT_NAMES = {
    OutputFormat.TEXT: "text",
    OutputFormat.BASESTATION: "basestation",
    OutputFormat.JSON: "json",
}


def formatter_input_type_from_string(s: str) -> FormatterInputType:
    """Map a name such as ``decoded`` or ``raw`` to its input type; unknown names give UNKNOWN."""
    for intype, (name, _) in _INTYPE_NAMES.items():
        if name == s:
            return intype
    return FormatterInputType.UNKNOWN


def output_format_from_string(s: str) -> OutputFormat:
    """Map a format name such as ``text`` or ``json`` to its format; unknown names give UNKNOWN."""
    for fmt, name in _FORMAT_NAMES.items():
        if name == s:
            return fmt
    return OutputFormat.UNKNOWN


class _OutputContext(Protocol):
    """What an output implementation provides.

    ``init`` and ``produce`` signal failure by raising :class:`OSError`.
    """

    def init(self) -> None: ...

    def produce(self, fmt: OutputFormat, metadata: Any, msg: Optional[bytes]) -> None: ...

    def handle_shutdown(self) -> None: ...

    def handle_failure(self) -> None: ...


@dataclass
class OutputEntry:
    """A formatted message travelling through an output queue."""

    msg: Optional[bytes] = None
    metadata: Any = None
    format: OutputFormat = OutputFormat.UNKNOWN
    shutdown: bool = False


@dataclass(frozen=True)
class OutputDescriptor:
    """Describes an output type and how to build its context from parameters."""

    name: str
    description: str
    configure: Callable[[Mapping[str, str]], Any]
    supports_format: Callable[[OutputFormat], bool]
    options: tuple = ()


@dataclass
class Formatter:
    """A formatter instance together with the outputs it feeds."""

    format: OutputFormat
    intype: FormatterInputType
    outputs: list = field(default_factory=list)


class OutputInstance:
    """One configured output with its own queue and delivery thread."""

    def __init__(
        self,
        descriptor: OutputDescriptor,
        fmt: OutputFormat,
        ctx: _OutputContext,
        queue_hwm: int = OUTPUT_QUEUE_HWM_DEFAULT,
    ):
        self.descriptor = descriptor
        self.format = fmt
        self.ctx = ctx
        self.queue_hwm = queue_hwm
        self.active = True
        self.retry_delay = RETRY_DELAY
        self._queue: deque = deque()
        self._cond = threading.Condition()

    def push(self, entry: OutputEntry) -> bool:
        """Queue a copy of ``entry``; return False if it was dropped."""
        with self._cond:
            overflow = self.queue_hwm != OUTPUT_QUEUE_HWM_NONE and len(self._queue) >= self.queue_hwm
            if entry.shutdown or (self.active and not overflow):
                metadata = copy.copy(entry.metadata) if entry.metadata is not None else None
                self._queue.append(replace(entry, metadata=metadata))
                self._cond.notify()
                return True
        if overflow:
            print(f"{self.descriptor.name} output queue overflow, throttling", file=sys.stderr)
        return False

    def _pop(self) -> OutputEntry:
        with self._cond:
            while not self._queue:
                self._cond.wait()
            return self._queue.popleft()

    def _requeue(self, entry: OutputEntry) -> None:
        with self._cond:
            self._queue.appendleft(entry)
            self._cond.notify()

    def run(self) -> None:
        """Deliver queued messages until a shutdown entry arrives."""
        try:
            self.ctx.init()
        except OSError:
            self.active = False
            self.ctx.handle_failure()
            self.drain()
            return

        while True:
            entry = self._pop()
            if entry.shutdown:
                break
            try:
                self.ctx.produce(entry.format, entry.metadata, entry.msg)
            except OSError:
                # Give the output a chance to recover (e.g. reconnect) before retrying.
                self._requeue(entry)
                time.sleep(self.retry_delay)

        self.ctx.handle_shutdown()
        self.active = False

    def start(self) -> threading.Thread:
        """Run the delivery loop in a daemon thread and return the thread."""
        thread = threading.Thread(
            target=self.run, name=f"output-{self.descriptor.name}", daemon=True
        )
        thread.start()
        return thread

    def drain(self) -> int:
        """Discard every queued entry and return how many there were."""
        with self._cond:
            count = len(self._queue)
            self._queue.clear()
            return count


def shutdown_outputs(formatters: Iterable[Formatter]) -> None:
    """Ask every output of every formatter to finish its queue and stop."""
    for fmtr in formatters:
        for output in fmtr.outputs:
            output.push(OutputEntry(shutdown=True))


def any_output_running(formatters: Iterable[Formatter]) -> bool:
    """Tell whether any output of any formatter is still active."""
    return any(output.active for fmtr in formatters for output in fmtr.outputs)