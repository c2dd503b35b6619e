"""Output that appends formatted messages to a file, optionally rotated by time."""

from __future__ import annotations

import sys
import time
from enum import Enum
from typing import Any, Mapping, Optional, Union

from hfdlkit.output import OutputFormat

_SUPPORTED = (OutputFormat.TEXT, OutputFormat.BASESTATION, OutputFormat.JSON)
_SUFFIX_FORMATS = {"hourly": "_%Y%m%d_%H", "daily": "_%Y%m%d"}

NAME = "file"
DESCRIPTION = "Output to a file"
OPTIONS = (
    ("path", "Path to the output file (required)"),
    ("rotate", "How often to start a new file: Accepted values: daily, hourly"),
)


class RotationMode(Enum):
    """How often a new output file is started."""

    NONE = "none"
    HOURLY = "hourly"
    DAILY = "daily"


def supports_format(fmt: OutputFormat) -> bool:
    """Tell whether the file output can write data of format ``fmt``."""
    return fmt in _SUPPORTED


class FileOutput:
    """Appends messages to a file; ``-`` means standard output."""

    def __init__(
        self, path: str, rotate: Union[RotationMode, str] = RotationMode.NONE, utc: bool = False
    ):
        self.path = str(path)
        self.rotate = RotationMode(rotate)
        self.utc = utc
        self._prefix = self.path
        self._extension = ""
        self._fh: Any = None
        self._owns_fh = False
        self._text = False
        self._current: Optional[time.struct_time] = None

    @classmethod
    def from_kvargs(cls, kvargs: Mapping[str, str]) -> "FileOutput":
        """Build an output from ``path`` and optional ``rotate`` parameters."""
        path = kvargs.get("path")
        if path is None:
            raise ValueError("output_file: path not specified")
        rotate = kvargs.get("rotate")
        if rotate is None:
            mode = RotationMode.NONE
        elif rotate in (RotationMode.HOURLY.value, RotationMode.DAILY.value):
            mode = RotationMode(rotate)
        else:
            raise ValueError(f"output_file: invalid rotation mode: {rotate}")
        return cls(path, mode)

    def _now(self) -> time.struct_time:
        t = time.time()
        return time.gmtime(t) if self.utc else time.localtime(t)

    def _split_extension(self) -> None:
        base_start = self.path.rfind("/") + 1
        dot = self.path.rfind(".")
        if dot > base_start and dot != len(self.path) - 1:
            self._prefix, self._extension = self.path[:dot], self.path[dot:]
        else:
            self._prefix, self._extension = self.path, ""

    def _open(self) -> None:
        if self.rotate is RotationMode.NONE:
            filename = self.path
        else:
            self._current = self._now()
            suffix = time.strftime(_SUFFIX_FORMATS[self.rotate.value], self._current)
            filename = f"{self._prefix}{suffix}{self._extension}"
        try:
            self._fh = open(filename, "ab")
        except OSError as exc:
            print(f"Could not open output file {filename}: {exc.strerror}", file=sys.stderr)
            raise
        self._owns_fh = True
        self._text = False

    def _close(self) -> None:
        if self._fh is not None and self._owns_fh:
            self._fh.close()
        self._fh = None
        self._owns_fh = False

    def init(self) -> None:
        """Open the output file (or attach to standard output)."""
        if self.path == "-":
            buffer = getattr(sys.stdout, "buffer", None)
            self._fh = buffer if buffer is not None else sys.stdout
            self._text = buffer is None
            self._owns_fh = False
            self.rotate = RotationMode.NONE
            return
        if self.rotate is not RotationMode.NONE:
            self._split_extension()
        self._open()

    def _rotate_if_due(self) -> None:
        new = self._now()
        cur = self._current
        if cur is None or (
            (self.rotate is RotationMode.HOURLY and new.tm_hour != cur.tm_hour)
            or (self.rotate is RotationMode.DAILY and new.tm_mday != cur.tm_mday)
        ):
            self._close()
            self._open()

    def produce(self, fmt: OutputFormat, metadata: Any, msg: Optional[bytes]) -> None:
        """Write ``msg`` to the file, starting a new file first if rotation is due."""
        if self.rotate is not RotationMode.NONE:
            self._rotate_if_due()
        if fmt not in _SUPPORTED:
            return
        if msg is None:
            raise ValueError("no message to write")
        if self._fh is None:
            raise RuntimeError("output file is not open")
        if self._text:
            self._fh.write(bytes(msg).decode("utf-8", "replace"))
        else:
            self._fh.write(bytes(msg))
        self._fh.flush()

    def handle_shutdown(self) -> None:
        print(f"output_file({self.path}): shutting down", file=sys.stderr)
        self._close()

    def handle_failure(self) -> None:
        print(
            f"output_file: could not write to '{self.path}', deactivating output",
            file=sys.stderr,
        )
        self._close()