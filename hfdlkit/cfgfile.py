"""Reading and writing of libconfig-style configuration text.

Groups map to ``dict``, lists to ``list``, arrays to :class:`ConfigArray`,
and scalars to ``bool``, ``int``, ``float`` and ``str``. Integer and float
settings keep their types across a load/dump round trip.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1

_NAME_RE = re.compile(r"[A-Za-z*][-A-Za-z0-9_*]*")

_TOKEN_RE = re.compile(
    r"""
     (?P<ws>[ \t\r\f\v]+)
    |(?P<nl>\n)
    |(?P<comment>(?:\#|//)[^\n]*)
    |(?P<block>/\*.*?\*/)
    |(?P<include>@include\b)
    |(?P<bool>(?i:true|false)(?![-A-Za-z0-9_*]))
    |(?P<float>[-+]?(?:(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?|[0-9]+[eE][-+]?[0-9]+))
    |(?P<hex>0[xX][0-9A-Fa-f]+L{0,2})
    |(?P<int>[-+]?[0-9]+L{0,2})
    |(?P<name>[A-Za-z*][-A-Za-z0-9_*]*)
    |(?P<string>"(?:[^"\\\n]|\\.)*")
    |(?P<punct>[=:;,{}\[\]()])
    """,
    re.VERBOSE | re.DOTALL,
)
_SKIPPED = {"ws", "nl", "comment", "block"}

_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t", "f": "\f"}
_REVERSE_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t", "\f": "\\f"}


class ConfigError(ValueError):
    """A configuration could not be read, parsed, validated or written."""

    def __init__(self, text: str, line: Optional[int] = None, io_error: bool = False):
        super().__init__(text)
        self.text = text
        self.line = line
        self.io_error = io_error

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.text}"
        return self.text


class ConfigArray(list):
    """A homogeneous sequence of scalars, written with square brackets."""

    def __repr__(self) -> str:
        return f"ConfigArray({list.__repr__(self)})"


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    line: int


def _tokenize(text: str) -> list:
    tokens = []
    line = 1
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ConfigError("syntax error", line)
        kind, value = m.lastgroup, m.group()
        if kind not in _SKIPPED:
            tokens.append(_Token(kind, value, line))
        line += value.count("\n")
        pos = m.end()
    tokens.append(_Token("eof", "", line))
    return tokens


def _unescape(body: str, line: int) -> str:
    def repl(m: re.Match) -> str:
        esc = m.group(1)
        if len(esc) == 3 and esc[0] == "x":
            return chr(int(esc[1:], 16))
        if esc in _ESCAPES:
            return _ESCAPES[esc]
        raise ConfigError(f"invalid escape sequence: \\{esc}", line)

    return re.sub(r"\\(x[0-9A-Fa-f]{2}|.)", repl, body, flags=re.DOTALL)


def _scalar_kind(value: Any) -> type:
    if isinstance(value, bool):
        return bool
    if isinstance(value, int):
        return int
    if isinstance(value, float):
        return float
    if isinstance(value, str):
        return str
    raise ConfigError("invalid array element")


class _Parser:
    def __init__(self, tokens: list):
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> _Token:
        return self._tokens[self._pos]

    def _next(self) -> _Token:
        tok = self._tokens[self._pos]
        if tok.kind != "eof":
            self._pos += 1
        return tok

    def _accept(self, punct: str) -> bool:
        tok = self._peek()
        if tok.kind == "punct" and tok.value == punct:
            self._pos += 1
            return True
        return False

    def _expect(self, punct: str) -> None:
        if not self._accept(punct):
            raise ConfigError("syntax error", self._peek().line)

    def _at(self, end: str) -> bool:
        tok = self._peek()
        if end == "eof":
            return tok.kind == "eof"
        return tok.kind == "punct" and tok.value == end

    def document(self) -> dict:
        result = self._settings("eof")
        if not self._at("eof"):
            raise ConfigError("syntax error", self._peek().line)
        return result

    def _settings(self, end: str) -> dict:
        result: dict = {}
        while not self._at(end):
            tok = self._next()
            if tok.kind == "include":
                raise ConfigError("@include directives are not supported", tok.line)
            if tok.kind != "name":
                raise ConfigError("syntax error", tok.line)
            sep = self._next()
            if sep.kind != "punct" or sep.value not in ("=", ":"):
                raise ConfigError("syntax error", sep.line)
            if tok.value in result:
                raise ConfigError(f"duplicate setting name: {tok.value}", tok.line)
            result[tok.value] = self._value()
            if not self._accept(";"):
                self._accept(",")
        return result

    def _value(self) -> Any:
        tok = self._next()
        if tok.kind == "punct":
            if tok.value == "{":
                group = self._settings("}")
                self._expect("}")
                return group
            if tok.value == "[":
                return self._array()
            if tok.value == "(":
                return self._list()
            raise ConfigError("syntax error", tok.line)
        return self._scalar(tok)

    def _scalar(self, tok: _Token) -> Any:
        if tok.kind == "bool":
            return tok.value.lower() == "true"
        if tok.kind == "int":
            return self._checked_int(int(tok.value.rstrip("L"), 10), tok.line)
        if tok.kind == "hex":
            return self._checked_int(int(tok.value.rstrip("L")[2:], 16), tok.line)
        if tok.kind == "float":
            return float(tok.value)
        if tok.kind == "string":
            parts = [_unescape(tok.value[1:-1], tok.line)]
            while self._peek().kind == "string":
                nxt = self._next()
                parts.append(_unescape(nxt.value[1:-1], nxt.line))
            return "".join(parts)
        raise ConfigError("syntax error", tok.line)

    @staticmethod
    def _checked_int(value: int, line: int) -> int:
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise ConfigError("integer value out of range", line)
        return value

    def _array(self) -> ConfigArray:
        items = ConfigArray()
        if self._accept("]"):
            return items
        while True:
            tok = self._next()
            value = self._scalar(tok)
            if items and _scalar_kind(value) is not _scalar_kind(items[0]):
                raise ConfigError("mismatched element type in array", tok.line)
            items.append(value)
            if self._accept(","):
                if self._accept("]"):
                    return items
                continue
            self._expect("]")
            return items

    def _list(self) -> list:
        items: list = []
        if self._accept(")"):
            return items
        while True:
            items.append(self._value())
            if self._accept(","):
                if self._accept(")"):
                    return items
                continue
            self._expect(")")
            return items


def loads(text: str) -> dict:
    """Parse configuration text and return its root group as a dictionary."""
    return _Parser(_tokenize(text)).document()


def load(path: Union[str, Path]) -> dict:
    """Read and parse a configuration file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError("file I/O error", io_error=True) from exc
    return loads(text)


def _quote(s: str) -> str:
    out = []
    for ch in s:
        if ch in _REVERSE_ESCAPES:
            out.append(_REVERSE_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return str(value)
        if _INT64_MIN <= value <= _INT64_MAX:
            return f"{value}L"
        raise ConfigError("integer value out of range")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ConfigError("non-finite floats cannot be written")
        text = repr(value)
        if not any(c in text for c in ".eE"):
            text += ".0"
        return text
    if isinstance(value, str):
        return _quote(value)
    raise TypeError(f"unsupported configuration value type: {type(value).__name__}")


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str))


def _format_value(value: Any, level: int) -> str:
    pad = "  " * level
    if isinstance(value, Mapping):
        return "{\n" + _format_settings(value, level + 1) + pad + "}"
    if isinstance(value, ConfigArray):
        if not value:
            return "[ ]"
        first = _scalar_kind(value[0])
        for item in value:
            if _scalar_kind(item) is not first:
                raise ConfigError("mismatched element type in array")
        return "[ " + ", ".join(_format_scalar(v) for v in value) + " ]"
    if isinstance(value, (list, tuple)):
        if not value:
            return "( )"
        if all(_is_scalar(v) for v in value):
            return "( " + ", ".join(_format_scalar(v) for v in value) + " )"
        inner = "  " * (level + 1)
        body = ",\n".join(inner + _format_value(v, level + 1) for v in value)
        return "(\n" + body + "\n" + pad + ")"
    return _format_scalar(value)


def _format_settings(group: Mapping, level: int) -> str:
    pad = "  " * level
    lines = []
    for name, value in group.items():
        if not isinstance(name, str) or _NAME_RE.fullmatch(name) is None:
            raise ConfigError(f"invalid setting name: {name!r}")
        lines.append(f"{pad}{name} = {_format_value(value, level)};\n")
    return "".join(lines)


def dumps(data: Mapping) -> str:
    """Serialize a mapping as configuration text."""
    if not isinstance(data, Mapping):
        raise ConfigError("the root of a configuration must be a mapping")
    return _format_settings(data, 0)


def dump(data: Mapping, path: Union[str, Path]) -> None:
    """Serialize a mapping and write it to ``path``."""
    text = dumps(data)
    try:
        Path(path).write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ConfigError("file I/O error", io_error=True) from exc