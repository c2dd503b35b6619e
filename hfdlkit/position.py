"""Aircraft position reports and completion of partial timestamps."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from hfdlkit.util import Location


@dataclass
class Timestamp:
    """A possibly partial UTC timestamp; flags tell which fields were received."""

    minute: int
    second: int = 0
    hour: int = 0
    day: int = 1
    month: int = 1
    year: int = 1970
    sec_present: bool = False
    min_present: bool = True
    hour_present: bool = False
    date_present: bool = False
    t: Optional[int] = None


@dataclass
class AircraftInfo:
    """Identification of the aircraft reporting a position."""

    flight_id: Optional[str] = None
    icao_address: Optional[int] = None


@dataclass
class Position:
    """A location together with the time it was reported for."""

    timestamp: Timestamp
    location: Location


@dataclass
class PositionInfo:
    """A position report attributed to an aircraft."""

    position: Position
    aircraft: AircraftInfo = field(default_factory=AircraftInfo)


def location_is_valid(location: Location) -> bool:
    """Tell whether the latitude and longitude lie within their valid ranges."""
    return abs(location.lat) <= 90.0 and abs(location.lon) <= 180.0


def _utc(now: Optional[datetime]) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    return now.replace(microsecond=0)


def _timegm(year: int, month: int, day: int, hour: int, minute: int, second: int) -> datetime:
    # Normalises out-of-range fields by carrying them over, like timegm().
    y, m = divmod(year * 12 + (month - 1), 12)
    base = datetime(y, m + 1, 1, tzinfo=timezone.utc)
    return base + timedelta(days=day - 1, hours=hour, minutes=minute, seconds=second)


def date_yesterday(now: datetime) -> date:
    """Return the calendar date (UTC) of the day before ``now``."""
    return _utc(now).date() - timedelta(days=1)


def fixup_timestamp(ts: Timestamp, now: Optional[datetime] = None) -> Timestamp:
    """Fill in missing fields so the timestamp is the closest matching moment not after ``now``.

    Supported inputs: time without date; hours and minutes only; minutes and
    seconds only. Naive ``now`` values are taken as UTC.
    """
    if not ts.min_present:
        raise ValueError("timestamp has no minutes")
    now = _utc(now)

    second = ts.second if ts.sec_present else 0
    hour = ts.hour
    if not ts.hour_present:
        if ts.minute < now.minute or (ts.minute == now.minute and second <= now.second):
            hour = now.hour
        else:
            hour = now.hour - 1 if now.hour > 0 else 23
    if ts.date_present:
        year, month, day = ts.year, ts.month, ts.day
    else:
        year, month, day = now.year, now.month, now.day

    result = _timegm(year, month, day, hour, ts.minute, second)
    if result > now:
        yesterday = date_yesterday(now)
        year, month, day = yesterday.year, yesterday.month, yesterday.day
        result = _timegm(year, month, day, hour, ts.minute, second)

    return replace(
        ts,
        second=result.second,
        minute=result.minute,
        hour=result.hour,
        day=result.day,
        month=result.month,
        year=result.year,
        sec_present=True,
        hour_present=True,
        date_present=True,
        t=int(result.timestamp()),
    )