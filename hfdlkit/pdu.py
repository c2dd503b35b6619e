"""HFDL PDU metadata, header data and frame check sequence verification."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum

_FCS_LEN = 2


def _make_crc_table() -> tuple:
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            c = (c >> 1) ^ 0x8408 if c & 1 else c >> 1
        table.append(c)
    return tuple(table)


_CRC_TABLE = _make_crc_table()


def _crc16_ccitt(data: bytes, crc: int = 0xFFFF) -> int:
    for octet in data:
        crc = (crc >> 8) ^ _CRC_TABLE[(crc ^ octet) & 0xFF]
    return crc


class PduDirection(IntEnum):
    """Direction of a PDU on the air."""

    UPLINK = 0
    DOWNLINK = 1


@dataclass
class PduMetadata:
    """Reception parameters of a single HFDL frame."""

    freq: int = 0
    version: int = 0
    bit_rate: int = 0
    freq_err_hz: float = 0.0
    rssi: float = 0.0
    noise_floor: float = 0.0
    slot: str = "S"
    rx_timestamp: float = 0.0

    def copy(self) -> "PduMetadata":
        """Return an independent copy of this metadata."""
        return replace(self)


@dataclass
class PduHeaderData:
    """Fields taken from an MPDU/SPDU header that lower layers need."""

    freq: int = 0
    src_id: int = 0
    dst_id: int = 0
    direction: PduDirection = PduDirection.UPLINK
    crc_ok: bool = False


def fcs_check(buf: bytes, hdr_len: int) -> bool:
    """Verify the FCS over the first ``hdr_len`` octets; the FCS follows them, LSB first."""
    if hdr_len < 0 or len(buf) < hdr_len + _FCS_LEN:
        raise ValueError("buffer too short for header and FCS")
    received = buf[hdr_len] | (buf[hdr_len + 1] << 8)
    computed = _crc16_ccitt(buf[:hdr_len]) ^ 0xFFFF
    return received == computed


def is_mpdu(buf: bytes) -> bool:
    """Tell whether the frame is an MPDU (as opposed to a squitter SPDU)."""
    if not buf:
        raise ValueError("empty PDU")
    return bool(buf[0] & 1)