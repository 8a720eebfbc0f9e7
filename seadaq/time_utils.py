"""UTC timestamp helpers for log records."""

import datetime

from .domain import Timestamp


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


def make_timestamp(dt: datetime.datetime | None = None) -> Timestamp:
    dt = dt or now_utc()
    return Timestamp(
        year=dt.year,
        doy=dt.timetuple().tm_yday,
        month=dt.month,
        day=dt.day,
        hour=dt.hour,
        minute=dt.minute,
        second=dt.second,
        millisecond=dt.microsecond // 1000,
    )


def is_plausible(ts: Timestamp, min_year: int) -> bool:
    """Reject records stamped by a clock that was never set."""
    return ts.year >= min_year
