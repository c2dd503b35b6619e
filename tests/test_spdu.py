import binascii

import pytest

from hfdlkit.pdu import PduDirection
from hfdlkit.spdu import SPDU_LEN, parse_spdu
from hfdlkit.util import reverse_byte

SRC_ID = 5
FRAME_INDEX = 0x34
FRAME_OFFSET = 5
MIN_PRIORITY = 7
SYSTABLE_VERSION = 0x21
GS1_ID = 10


def _x25_fcs(data: bytes) -> bytes:
    # Reflected CRC expressed through the non-reflected stdlib routine.
    crc = binascii.crc_hqx(bytes(reverse_byte(b) for b in data), 0xFFFF)
    reflected = (reverse_byte(crc & 0xFF) << 8) | reverse_byte(crc >> 8)
    value = reflected ^ 0xFFFF
    return bytes([value & 0xFF, value >> 8])


def _frame() -> bytes:
    body = bytearray(SPDU_LEN - 2)
    body[0] = 0x02 | (1 << 2) | 0x20 | (2 << 6)
    body[1] = 0x80 | SRC_ID
    body[2] = FRAME_INDEX
    body[3] = FRAME_OFFSET << 4
    body[52] = MIN_PRIORITY
    body[53] = SYSTABLE_VERSION
    body[54] = 0x10            # gs0 frequency bit 0
    body[57] = GS1_ID
    body[58] = 0x04            # gs1 frequency bit 2
    return bytes(body) + _x25_fcs(bytes(body))


class RecordingStats:
    def __init__(self):
        self.calls = []

    def increment_per_channel(self, freq, counter):
        self.calls.append((freq, counter))


class FakeSystable:
    def station_name(self, gs_id):
        return "Test Station" if gs_id == SRC_ID else None

    def station_frequency(self, gs_id, freq_id):
        return -1.0


def test_parse_valid_frame_fields():
    stats = RecordingStats()
    [spdu] = parse_spdu(_frame(), 8927, stats=stats)
    assert spdu.header.crc_ok is True
    assert spdu.header.direction is PduDirection.UPLINK
    assert spdu.header.src_id == SRC_ID
    assert spdu.rls_in_use is True
    assert spdu.iso8208_supported is True
    assert spdu.version == 1
    assert spdu.change_note == 2
    assert spdu.frame_index == FRAME_INDEX
    assert spdu.frame_offset == FRAME_OFFSET
    assert spdu.min_priority == MIN_PRIORITY
    assert spdu.systable_version == SYSTABLE_VERSION
    assert stats.calls == [(8927, "frames.good"), (8927, "frame.dir.gnd2air")]


def test_parse_ground_station_status():
    [spdu] = parse_spdu(_frame(), 8927)
    assert len(spdu.gs_data) == 3
    assert spdu.gs_data[0].id == SRC_ID
    assert spdu.gs_data[0].utc_sync is True
    assert spdu.gs_data[0].freqs_in_use == 1
    assert spdu.gs_data[1].id == GS1_ID
    assert spdu.gs_data[1].utc_sync is False
    assert spdu.gs_data[1].freqs_in_use == 0x04


def test_bad_fcs_dropped_by_default():
    frame = bytearray(_frame())
    frame[10] ^= 0xFF
    stats = RecordingStats()
    assert parse_spdu(bytes(frame), 100, stats=stats) == []
    assert stats.calls == [(100, "frame.errors.bad_fcs")]


def test_bad_fcs_kept_when_requested():
    frame = bytearray(_frame())
    frame[10] ^= 0xFF
    [spdu] = parse_spdu(bytes(frame), 100, output_corrupted_pdus=True)
    assert spdu.header.crc_ok is False
    assert spdu.format_text(0) == "-- Unparseable PDU (CRC check failed)\n"
    assert spdu.to_json() == {"err": True}


def test_too_short_frame():
    stats = RecordingStats()
    assert parse_spdu(b"\x00" * 10, 42, stats=stats) == []
    assert stats.calls == [(42, "frame.errors.too_short")]


def test_empty_frame_raises():
    with pytest.raises(ValueError):
        parse_spdu(b"", 1)


def test_format_text_contents():
    [spdu] = parse_spdu(_frame(), 8927)
    text = spdu.format_text(0, FakeSystable())
    lines = text.splitlines()
    assert lines[0] == "Uplink SPDU:"
    assert lines[1] == " Src GS: Test Station"
    assert "  Change note: Upcoming frequency change" in lines
    assert f"  Minimum priority: {MIN_PRIORITY}" in lines
    assert text.count("Frequencies in use") == 3


def test_format_text_raw_frames_prepends_hexdump():
    [spdu] = parse_spdu(_frame(), 8927)
    plain = spdu.format_text(0)
    raw = spdu.format_text(0, output_raw_frames=True)
    assert raw.endswith(plain)
    assert len(raw) > len(plain)


def test_to_json_structure():
    [spdu] = parse_spdu(_frame(), 8927)
    data = spdu.to_json(FakeSystable())
    assert data["err"] is False
    assert data["src"]["name"] == "Test Station"
    assert data["change_note"] == "Upcoming frequency change"
    assert data["frame_index"] == FRAME_INDEX
    assert [gs["gs"]["id"] for gs in data["gs_status"]] == [SRC_ID, GS1_ID, 0]
    assert data["gs_status"][1]["freqs"] == [{"id": 2}]