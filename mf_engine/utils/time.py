"""Time utilities (IST)."""

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

IST = ZoneInfo("Asia/Kolkata")


def now_ist_naive() -> datetime:
    """
    Current time in IST, returned as naive datetime for storage.
    """
    return datetime.now(IST).replace(tzinfo=None)


def today_ist() -> date:
    return now_ist_naive().date()


def to_ist(dt: datetime, naive_assumed_tz: tzinfo = timezone.utc) -> datetime:
    """Convert datetime to IST timezone-aware value."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=naive_assumed_tz)
    return dt.astimezone(IST)


def to_ist_iso_db(dt: datetime) -> str:
    """
    Convert a stored timestamp to an IST ISO string.

    Stored timestamps are naive IST, so naive values are interpreted as IST
    (not UTC) here.
    """
    return to_ist(dt, naive_assumed_tz=IST).isoformat()
