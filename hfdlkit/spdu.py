"""Decoding and formatting of HFDL squitter (SPDU) frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from hfdlkit.pdu import PduDirection, PduHeaderData, fcs_check
from hfdlkit.util import (
    freq_list_format_json,
    freq_list_format_text,
    gs_id_format_json,
    gs_id_format_text,
    hexdump_with_indent,
)

SPDU_LEN = 66
JSON_KEY = "spdu"

CHANGE_NOTE_DESCR = (
    "None",
    "Channel down",
    "Upcoming frequency change",
    "Ground station down",
)


class _Stats(Protocol):
    def increment_per_channel(self, freq: int, counter: str) -> None: ...


@dataclass
class GsStatus:
    """Status of one ground station as announced in a squitter."""

    id: int = 0
    utc_sync: bool = False
    freqs_in_use: int = 0


@dataclass
class Spdu:
    """A decoded squitter PDU."""

    pdu: bytes
    header: PduHeaderData = field(default_factory=PduHeaderData)
    gs_data: list = field(default_factory=list)
    frame_index: int = 0
    frame_offset: int = 0
    version: int = 0
    change_note: int = 0
    min_priority: int = 0
    systable_version: int = 0
    rls_in_use: bool = False
    iso8208_supported: bool = False

    def format_text(self, indent: int = 0, systable=None, output_raw_frames: bool = False) -> str:
        """Render the squitter as indented text."""
        if indent < 0:
            raise ValueError("indent must not be negative")
        out = []
        if output_raw_frames and self.pdu:
            out.append(hexdump_with_indent(self.pdu, indent + 1))
        if not self.header.crc_ok:
            out.append(f"{' ' * indent}-- Unparseable PDU (CRC check failed)\n")
            return "".join(out)

        out.append(f"{' ' * indent}Uplink SPDU:\n")
        indent += 1
        out.append(gs_id_format_text(indent, "Src GS", self.header.src_id, systable))
        out.append(
            f"{' ' * indent}Squitter: ver: {self.version} rls: {int(self.rls_in_use)} "
            f"iso: {int(self.iso8208_supported)}\n"
        )
        indent += 1
        pad = " " * indent
        out.append(f"{pad}Change note: {CHANGE_NOTE_DESCR[self.change_note]}\n")
        out.append(f"{pad}TDMA Frame: index: {self.frame_index} offset: {self.frame_offset}\n")
        out.append(f"{pad}Minimum priority: {self.min_priority}\n")
        out.append(f"{pad}System table version: {self.systable_version}\n")
        out.append(f"{pad}Ground station status:\n")
        for gs in self.gs_data:
            out.append(gs_id_format_text(indent, "ID", gs.id, systable))
            out.append(f"{' ' * (indent + 1)}UTC sync: {int(gs.utc_sync)}\n")
            out.append(
                freq_list_format_text(indent + 1, "Frequencies in use", gs.id, gs.freqs_in_use, systable)
            )
        return "".join(out)

    def to_json(self, systable=None) -> dict:
        """Return the squitter as a JSON-ready dictionary."""
        result: dict = {"err": not self.header.crc_ok}
        if not self.header.crc_ok:
            return result
        result.update(
            {
                "src": gs_id_format_json(self.header.src_id, systable),
                "spdu_version": self.version,
                "rls": self.rls_in_use,
                "iso": self.iso8208_supported,
                "change_note": CHANGE_NOTE_DESCR[self.change_note],
                "frame_index": self.frame_index,
                "frame_offset": self.frame_offset,
                "min_priority": self.min_priority,
                "systable_version": self.systable_version,
                "gs_status": [
                    {
                        "gs": gs_id_format_json(gs.id, systable),
                        "utc_sync": gs.utc_sync,
                        "freqs": freq_list_format_json(gs.id, gs.freqs_in_use, systable),
                    }
                    for gs in self.gs_data
                ],
            }
        )
        return result


def _count(stats: Optional[_Stats], freq: int, counter: str) -> None:
    if stats is not None:
        stats.increment_per_channel(freq, counter)


def _decode_fields(spdu: Spdu, buf: bytes) -> None:
    spdu.header.direction = PduDirection.UPLINK
    spdu.header.src_id = buf[1] & 0x7F

    spdu.rls_in_use = bool(buf[0] & 2)
    spdu.version = (buf[0] >> 2) & 3
    spdu.iso8208_supported = bool(buf[0] & 0x20)
    spdu.change_note = (buf[0] & 0xC0) >> 6

    spdu.frame_index = buf[2] | ((buf[3] & 0xF) << 8)
    spdu.frame_offset = buf[3] >> 4

    spdu.min_priority = buf[52] & 0xF
    spdu.systable_version = buf[53] | ((buf[54] & 0xF) << 8)

    spdu.gs_data = [
        GsStatus(
            id=spdu.header.src_id,
            utc_sync=bool(buf[1] & 0x80),
            freqs_in_use=(buf[54] >> 4) | (buf[55] << 4) | (buf[56] << 12),
        ),
        GsStatus(
            id=buf[57] & 0x7F,
            utc_sync=bool(buf[57] & 0x80),
            freqs_in_use=buf[58] | (buf[59] << 8) | ((buf[60] & 0xF) << 16),
        ),
        GsStatus(
            id=(buf[60] >> 4) | ((buf[61] & 0x7) << 4),
            utc_sync=bool(buf[61] & 0x8),
            freqs_in_use=(buf[61] >> 4) | (buf[62] << 4) | (buf[63] << 12),
        ),
    ]


def parse_spdu(
    pdu: bytes, freq: int, output_corrupted_pdus: bool = False, stats: Optional[_Stats] = None
) -> list:
    """Decode a squitter frame.

    Returns a list holding the decoded SPDU, or an empty list when the frame
    is damaged and corrupted PDUs are not to be output.
    """
    if not pdu:
        raise ValueError("empty PDU")
    pdu = bytes(pdu)
    spdu = Spdu(pdu=pdu, header=PduHeaderData(freq=freq))

    if len(pdu) < SPDU_LEN:
        _count(stats, freq, "frame.errors.too_short")
    elif fcs_check(pdu, SPDU_LEN - 2):
        spdu.header.crc_ok = True
        _count(stats, freq, "frames.good")
        _count(stats, freq, "frame.dir.gnd2air")
        _decode_fields(spdu, pdu)
    else:
        _count(stats, freq, "frame.errors.bad_fcs")

    if spdu.header.crc_ok or output_corrupted_pdus:
        return [spdu]
    return []