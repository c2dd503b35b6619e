"""HFDL system table: loading, validation, lookups and assembly from received PDUs."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from hfdlkit import cfgfile
from hfdlkit.cfgfile import ConfigArray, ConfigError
from hfdlkit.util import GS_MAX_FREQ_CNT, Location, parse_coordinate

STATION_ID_MAX = 127
SYSTABLE_VERSION_MAX = 4095
JSON_KEY = "systable_complete"

_GS_DATA_MIN_LEN = 8  # from GS ID to Master Slot Offset, excluding frequencies
_FREQ_FIELD_LEN = 3
_SLOT_FIELD_LEN = 1

_ERR_VERSION_MISSING = "version missing or wrong type (must be an integer)"
_ERR_VERSION_OUT_OF_RANGE = "version out of range"
_ERR_STATIONS_MISSING = "stations missing or wrong type (must be a list)"
_ERR_STATION_WRONG_TYPE = "station setting has wrong type (must be a group)"
_ERR_STATION_ID_MISSING = "station id missing or wrong type (must be an integer)"
_ERR_STATION_ID_OUT_OF_RANGE = "station id out of range"
_ERR_STATION_ID_DUPLICATE = "duplicate station id"
_ERR_STATION_NAME_WRONG_TYPE = "name setting has wrong type (must be a string)"
_ERR_STATION_COORDINATE_MISSING = "station latitude or longitude missing (need both or neither)"
_ERR_STATION_COORDINATE_WRONG_TYPE = (
    "station coordinate has wrong type (must be a floating-point number)"
)
_ERR_FREQUENCIES_MISSING = "frequencies missing or wrong type (must be a list)"
_ERR_FREQUENCY_WRONG_TYPE = "frequency setting has wrong type (must be a number)"


class SystableErrorType(Enum):
    """Category of a system table error."""

    NONE = 0
    IO = 1
    FILE_PARSE = 2
    VALIDATE = 3


class SystableError(Exception):
    """A system table could not be read, parsed or validated."""

    def __init__(self, message: str, error_type: SystableErrorType, line: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.type = error_type
        self.line = line


@dataclass
class GroundStationData:
    """Parameters of one ground station as decoded from a System Table message."""

    gs_id: int
    utc_sync: bool
    location: Location
    spdu_version: int
    frequencies: list = field(default_factory=list)
    master_frame_slots: list = field(default_factory=list)


@dataclass
class SystableComplete:
    """A decoded, fully reassembled System Table message."""

    gs_list: list = field(default_factory=list)
    version: int = 0
    err: bool = False

    def format_text(self, indent: int = 0) -> str:
        """Render the system table as indented text."""
        if indent < 0:
            raise ValueError("indent must not be negative")
        if self.err:
            return f"{' ' * indent}-- Unparseable System Table message\n"
        out = [f"{' ' * indent}System Table (complete):\n"]
        indent += 1
        out.append(f"{' ' * indent}Version: {self.version & 0xFFFF}\n")
        for gs in self.gs_list:
            pad = " " * (indent + 1)
            out.append(f"{' ' * indent}GS ID: {gs.gs_id}\n")
            out.append(f"{pad}UTC sync: {int(gs.utc_sync)}\n")
            out.append(f"{pad}Location:\n")
            out.append(f"{' ' * (indent + 2)}Lat: {gs.location.lat:.7f}\n")
            out.append(f"{' ' * (indent + 2)}Lon: {gs.location.lon:.7f}\n")
            out.append(f"{pad}Squitter version: {gs.spdu_version}\n")
            out.append(f"{pad}Frequencies & master frame slots:\n")
            for freq, slot in zip(gs.frequencies, gs.master_frame_slots):
                out.append(f"{' ' * (indent + 2)}{freq:8d} (slot {slot:2d})\n")
        return "".join(out)

    def to_json(self) -> dict:
        """Return the system table as a JSON-ready dictionary."""
        result: dict = {"err": self.err}
        if self.err:
            return result
        result["version"] = self.version
        result["ground_stations"] = [
            {
                "id": gs.gs_id,
                "utc_sync": gs.utc_sync,
                "location": {"lat": gs.location.lat, "lon": gs.location.lon},
                "spdu_version": gs.spdu_version,
                "freqs": [
                    {"freq": freq, "master_frame_slot": slot}
                    for freq, slot in zip(gs.frequencies, gs.master_frame_slots)
                ],
            }
            for gs in self.gs_list
        ]
        return result


def decode_frequency(buf: bytes) -> int:
    """Decode a 3-octet BCD frequency field into Hz."""
    if len(buf) < _FREQ_FIELD_LEN:
        raise ValueError("frequency field needs 3 octets")
    digits = [buf[0] & 0xF, buf[0] >> 4, buf[1] & 0xF, buf[1] >> 4, buf[2] & 0xF, buf[2] >> 4]
    return sum(d * 10 ** (power + 2) for power, d in enumerate(digits))


def _decode_gs(buf: bytes) -> Optional[tuple]:
    """Decode one ground station record; return (data, consumed) or None on error."""
    gs_id = buf[0] & 0x7F
    utc_sync = (buf[0] & 0x80) != 0
    lat = parse_coordinate(buf[1] | (buf[2] << 8) | ((buf[3] & 0xF) << 16))
    lon = parse_coordinate((buf[3] >> 4) | (buf[4] << 4) | (buf[5] << 12))
    spdu_version = buf[6] & 7
    freq_cnt = (buf[6] >> 3) & 0x1F
    if freq_cnt > GS_MAX_FREQ_CNT:
        return None
    consumed = _GS_DATA_MIN_LEN - 1
    frequencies = []
    slots = []
    for f in range(freq_cnt):
        pos = _GS_DATA_MIN_LEN - 1 + f * (_FREQ_FIELD_LEN + _SLOT_FIELD_LEN)
        if pos + _FREQ_FIELD_LEN + _SLOT_FIELD_LEN > len(buf):
            return None
        frequencies.append(decode_frequency(buf[pos:pos + _FREQ_FIELD_LEN]))
        slots.append(buf[pos + _FREQ_FIELD_LEN] & 0xF)
        consumed += _FREQ_FIELD_LEN + _SLOT_FIELD_LEN
    data = GroundStationData(
        gs_id=gs_id,
        utc_sync=utc_sync,
        location=Location(lat, lon),
        spdu_version=spdu_version,
        frequencies=frequencies,
        master_frame_slots=slots,
    )
    return data, consumed


def decode_systable(buf: bytes) -> SystableComplete:
    """Decode a reassembled System Table message; trailing short data is ignored."""
    if not buf:
        raise ValueError("empty System Table message")
    buf = bytes(buf)
    result = SystableComplete()
    while len(buf) >= _GS_DATA_MIN_LEN:
        decoded = _decode_gs(buf)
        if decoded is None:
            result.err = True
            break
        data, consumed = decoded
        result.gs_list.append(data)
        buf = buf[consumed:]
    return result


def is_newer(v_old: int, v_new: int) -> bool:
    """Tell whether ``v_new`` is a newer system table version than ``v_old``, allowing wraparound."""
    if v_old < 0 and v_new >= 0:
        return True
    if v_new < 0 and v_old >= 0:
        return False
    if v_new == v_old:
        return False
    return v_new > v_old or v_new + SYSTABLE_VERSION_MAX - v_old < (SYSTABLE_VERSION_MAX + 1) >> 1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_list(value) -> bool:
    return isinstance(value, list) and not isinstance(value, ConfigArray)


def _invalid(message: str) -> SystableError:
    return SystableError(message, SystableErrorType.VALIDATE)


def _validate_station(station) -> None:
    if not isinstance(station, dict):
        raise _invalid(_ERR_STATION_WRONG_TYPE)
    gs_id = station.get("id")
    if not _is_int(gs_id):
        raise _invalid(_ERR_STATION_ID_MISSING)
    if not 0 <= gs_id <= STATION_ID_MAX:
        raise _invalid(_ERR_STATION_ID_OUT_OF_RANGE)
    if "name" in station and not isinstance(station["name"], str):
        raise _invalid(_ERR_STATION_NAME_WRONG_TYPE)
    has_lat, has_lon = "lat" in station, "lon" in station
    if has_lat != has_lon:
        raise _invalid(_ERR_STATION_COORDINATE_MISSING)
    if has_lat and not (isinstance(station["lat"], float) and isinstance(station["lon"], float)):
        raise _invalid(_ERR_STATION_COORDINATE_WRONG_TYPE)
    frequencies = station.get("frequencies")
    if not _is_list(frequencies):
        raise _invalid(_ERR_FREQUENCIES_MISSING)
    if not all(_is_number(f) for f in frequencies):
        raise _invalid(_ERR_FREQUENCY_WRONG_TYPE)


def _validate(config: dict) -> None:
    version = config.get("version")
    if not _is_int(version):
        raise _invalid(_ERR_VERSION_MISSING)
    if not 0 <= version <= SYSTABLE_VERSION_MAX:
        raise _invalid(_ERR_VERSION_OUT_OF_RANGE)
    stations = config.get("stations")
    if not _is_list(stations):
        raise _invalid(_ERR_STATIONS_MISSING)
    for station in stations:
        _validate_station(station)


def _station_cache(config: dict) -> dict:
    stations = config.get("stations")
    if stations is None:
        raise _invalid(_ERR_STATIONS_MISSING)
    cache: dict = {}
    for station in stations:
        gs_id = station["id"]
        if gs_id in cache:
            raise _invalid(_ERR_STATION_ID_DUPLICATE)
        cache[gs_id] = station
    return cache


def _generate_config(sc: SystableComplete) -> dict:
    return {
        "version": sc.version,
        "stations": [
            {
                "id": gs.gs_id,
                "lat": float(gs.location.lat),
                "lon": float(gs.location.lon),
                "frequencies": [f / 1000.0 for f in gs.frequencies],
            }
            for gs in sc.gs_list
        ],
    }


def _locations_match(s1: dict, s2: dict) -> bool:
    coords = [s.get(key) for s in (s1, s2) for key in ("lat", "lon")]
    if not all(isinstance(c, float) for c in coords):
        return False
    lat1, lon1, lat2, lon2 = coords
    return abs(lat1 - lat2) < 1.0 and abs(lon1 - lon2) < 1.0


def _copy_station_names(config: dict, old_stations: dict) -> None:
    """Carry names over from old stations with the same ID and (almost) the same location."""
    stations = config.get("stations")
    if not _is_list(stations):
        return
    for station in stations:
        old = old_stations.get(station.get("id"))
        if old is None or not _locations_match(station, old):
            continue
        name = old.get("name")
        if isinstance(name, str):
            station["name"] = name


@dataclass
class _PduSet:
    version: int
    pdus: list


class Systable:
    """The system table in use, plus a System Table PDU set being collected."""

    def __init__(self, savefile: Optional[Union[str, Path]] = None):
        self.savefile = savefile
        self._config: dict = {}
        self._stations: dict = {}
        self._available = False
        self._pdu_set: Optional[_PduSet] = None

    def read_from_file(self, path: Union[str, Path]) -> None:
        """Load and validate a system table file, making it the current table."""
        self._config = {}
        self._stations = {}
        self._available = False
        try:
            config = cfgfile.load(path)
        except ConfigError as exc:
            kind = SystableErrorType.IO if exc.io_error else SystableErrorType.FILE_PARSE
            raise SystableError(exc.text, kind, exc.line) from exc
        _validate(config)
        stations = _station_cache(config)
        self._config = config
        self._stations = stations
        self._available = True

    def is_available(self) -> bool:
        """Tell whether a valid system table is loaded."""
        return self._available

    def version(self) -> int:
        """Return the current table version, or -1 if none is available."""
        if not self._available:
            return -1
        return self._config.get("version", -1)

    def _station(self, gs_id: int) -> Optional[dict]:
        if not self._available or not 0 <= gs_id < STATION_ID_MAX:
            return None
        return self._stations.get(gs_id)

    def station_name(self, gs_id: int) -> Optional[str]:
        """Return the configured name of a ground station, if any."""
        station = self._station(gs_id)
        if station is None:
            return None
        name = station.get("name")
        return name if isinstance(name, str) else None

    def station_frequency(self, gs_id: int, freq_id: int) -> float:
        """Return frequency ``freq_id`` of a ground station in kHz, or -1.0 if unknown."""
        station = self._station(gs_id)
        if station is None:
            return -1.0
        frequencies = station.get("frequencies")
        if not isinstance(frequencies, list) or not 0 <= freq_id < len(frequencies):
            return -1.0
        freq = frequencies[freq_id]
        if _is_number(freq):
            return float(freq)
        return -1.0

    def store_pdu(self, version: int, idx: int, pdu_set_len: int, buf: bytes) -> None:
        """Store one System Table PDU; a set with other parameters is discarded first."""
        if pdu_set_len < 1 or not 0 <= idx < pdu_set_len:
            return
        ps = self._pdu_set
        if ps is not None and (ps.version != version or len(ps.pdus) != pdu_set_len):
            ps = None
        if ps is None:
            ps = self._pdu_set = _PduSet(version=version, pdus=[None] * pdu_set_len)
        data = bytes(buf)
        if ps.pdus[idx] != data:
            ps.pdus[idx] = data

    def process_pdu_set(self) -> Optional[SystableComplete]:
        """Decode the collected PDU set once complete, adopting it if it is newer.

        Returns the decoded message, or None when the set is still incomplete.
        """
        ps = self._pdu_set
        if ps is None or any(p is None for p in ps.pdus):
            return None
        self._pdu_set = None
        result = decode_systable(b"".join(ps.pdus))
        result.version = ps.version

        if result.err or (self._available and not is_newer(self.version(), result.version)):
            return result

        config = _generate_config(result)
        _copy_station_names(config, self._stations)
        if self.savefile is not None:
            try:
                cfgfile.dump(config, self.savefile)
            except ConfigError as exc:
                print(f"Could not save system table to {self.savefile}: {exc.text}", file=sys.stderr)
            else:
                print(f"System table version {result.version} saved to {self.savefile}", file=sys.stderr)
        try:
            stations = _station_cache(config)
        except SystableError as exc:
            print(f"Failed to populate ground station cache: {exc.message}", file=sys.stderr)
            print("Keeping the old system table", file=sys.stderr)
        else:
            self._config = config
            self._stations = stations
            self._available = True
        return result