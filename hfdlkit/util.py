"""Byte, coordinate and text-formatting helpers shared by the protocol decoders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

GS_MAX_FREQ_CNT = 20
"""Maximum number of frequencies assigned to a single ground station."""

_HEXDUMP_ROW = 16


class _Stations(Protocol):
    """Anything that can resolve ground station names and frequencies."""

    def station_name(self, gs_id: int) -> Optional[str]: ...

    def station_frequency(self, gs_id: int, freq_id: int) -> float: ...


@dataclass(frozen=True)
class Location:
    """A geographic position in decimal degrees."""

    lat: float
    lon: float


def reverse_byte(x: int) -> int:
    """Return the byte ``x`` with its bit order reversed."""
    return int(f"{x & 0xFF:08b}"[::-1], 2)


def parse_icao_hex(buf: bytes) -> int:
    """Decode a 24-bit ICAO address stored as three bit-reversed octets."""
    if len(buf) < 3:
        raise ValueError("ICAO address needs 3 octets")
    result = 0
    for octet in buf[:3]:
        result = (result << 8) | reverse_byte(octet)
    return result


def parse_coordinate(c: int) -> float:
    """Convert a 20-bit two's complement coordinate field into degrees."""
    r = c & 0xFFFFF
    if r & 0x80000:
        r -= 0x100000
    return r * 180.0 / float(0x7FFFF)


def _indent_lines(text: str, indent: int) -> str:
    pad = " " * indent
    return "".join(f"{pad}{line}\n" for line in text.splitlines())


def hexdump(data: Optional[bytes]) -> str:
    """Render ``data`` as a classic hex + ASCII dump, 16 octets per row."""
    if data is None:
        return "<undef>"
    if not data:
        return "<none>"
    rows = []
    for start in range(0, len(data), _HEXDUMP_ROW):
        chunk = data[start:start + _HEXDUMP_ROW]
        pad = _HEXDUMP_ROW - len(chunk)
        cells = [f"{b:02x}" for b in chunk] + ["  "] * pad
        chars = [chr(b) if 32 <= b <= 126 else "." for b in chunk] + [" "] * pad
        hex_part = (
            "".join(f"{c} " for c in cells[:8]) + " " + "".join(f"{c} " for c in cells[8:])
        )
        ascii_part = "".join(chars[:8]) + " " + "".join(chars[8:])
        rows.append(f"{hex_part} |{ascii_part}|\n")
    return "".join(rows)


def hexdump_with_indent(data: Optional[bytes], indent: int) -> str:
    """Return a hex dump of ``data`` with every line indented by ``indent`` spaces."""
    if indent < 0:
        raise ValueError("indent must not be negative")
    return _indent_lines(hexdump(data), indent)


def _set_freq_ids(freqs: int):
    return (i for i in range(GS_MAX_FREQ_CNT) if (freqs >> i) & 1)


def _station_frequency(systable: Optional[_Stations], gs_id: int, freq_id: int) -> float:
    if systable is None:
        return -1.0
    return systable.station_frequency(gs_id, freq_id)


def _station_name(systable: Optional[_Stations], gs_id: int) -> Optional[str]:
    if systable is None:
        return None
    return systable.station_name(gs_id)


def freq_list_format_text(
    indent: int, label: str, gs_id: int, freqs: int, systable: Optional[_Stations] = None
) -> str:
    """Format a frequency bitmap as a text line, resolving frequencies where known."""
    if indent < 0:
        raise ValueError("indent must not be negative")
    items = []
    for freq_id in _set_freq_ids(freqs):
        f = _station_frequency(systable, gs_id, freq_id)
        items.append(f"{f:.1f}" if f > 0.0 else f"{freq_id}")
    return f"{' ' * indent}{label}: {', '.join(items)}\n"


def freq_list_format_json(gs_id: int, freqs: int, systable: Optional[_Stations] = None) -> list:
    """Return a frequency bitmap as a list of ``{"id", "freq"}`` objects."""
    result = []
    for freq_id in _set_freq_ids(freqs):
        entry: dict = {"id": freq_id}
        f = _station_frequency(systable, gs_id, freq_id)
        if f > 0.0:
            entry["freq"] = f
        result.append(entry)
    return result


def gs_id_format_text(
    indent: int, label: str, gs_id: int, systable: Optional[_Stations] = None
) -> str:
    """Format a ground station ID, using its name when the system table knows it."""
    if indent < 0:
        raise ValueError("indent must not be negative")
    name = _station_name(systable, gs_id)
    return f"{' ' * indent}{label}: {name if name is not None else gs_id}\n"


def gs_id_format_json(gs_id: int, systable: Optional[_Stations] = None) -> dict:
    """Return a ground station ID as a JSON-ready object."""
    result: dict = {"type": "Ground station", "id": gs_id}
    name = _station_name(systable, gs_id)
    if name is not None:
        result["name"] = name
    return result


def unknown_proto_format_text(data: Optional[bytes], indent: int) -> str:
    """Format an undecoded payload as a labelled hex dump; empty data yields nothing."""
    if indent < 0:
        raise ValueError("indent must not be negative")
    if not data:
        return ""
    return f"{' ' * indent}Data ({len(data)} bytes):\n" + hexdump_with_indent(data, indent + 1)


def unknown_proto_format_json(data: Optional[bytes]) -> dict:
    """Return an undecoded payload as a JSON-ready object with an octet array."""
    if not data:
        return {}
    return {"data": list(data)}