from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app

# Two clocks live in this application:
#
# - System time (created_at, session expiry, security events) is UTC-naive.
# - Business time (visit_date, signup_date, voucher expiration) is naive
#   wall-clock time in the configured APP_TIMEZONE. Eligibility windows are
#   computed on these values directly, with day counts taken as calendar-date
#   differences so a DST shift never changes them.


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _zone(tz_name: Optional[str]) -> ZoneInfo:
    if tz_name is None:
        tz_name = current_app.config.get("APP_TIMEZONE", "UTC")
    return ZoneInfo(tz_name)


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Business 'now': wall-clock time in APP_TIMEZONE, tzinfo stripped."""
    return datetime.now(_zone(tz_name)).replace(tzinfo=None, microsecond=0)


def local_today(tz_name: Optional[str] = None) -> date:
    return local_now(tz_name).date()


def parse_local_datetime(value: Optional[str], tz_name: Optional[str] = None) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string into naive business time.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM[:SS]" (naive) is taken as wall-clock time already
    - "...Z" or "...+/-HH:MM" is converted into APP_TIMEZONE and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt.replace(microsecond=0)

    return dt.astimezone(_zone(tz_name)).replace(tzinfo=None, microsecond=0)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Strict YYYY-MM-DD parsing; None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return datetime.strptime(s, "%Y-%m-%d").date()


def combine_date_time(date_value: str, time_value: Optional[str]) -> datetime:
    """
    Build a business timestamp from separate date and time form values.

    Time accepts HH:MM or HH:MM:SS; a missing time means midnight.
    """
    day = parse_iso_date(date_value)
    if day is None:
        raise ValueError("date is required")
    if not time_value or not time_value.strip():
        return datetime.combine(day, time.min)
    t = time_value.strip()
    fmt = "%H:%M:%S" if t.count(":") == 2 else "%H:%M"
    return datetime.combine(day, datetime.strptime(t, fmt).time())


def month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Inclusive [first day 00:00:00, last day 23:59:59] of moment's month."""
    last_day = calendar.monthrange(moment.year, moment.month)[1]
    start = datetime(moment.year, moment.month, 1)
    end = datetime(moment.year, moment.month, last_day, 23, 59, 59)
    return start, end


def year_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Inclusive [Jan 1 00:00:00, Dec 31 23:59:59] of moment's year."""
    return datetime(moment.year, 1, 1), datetime(moment.year, 12, 31, 23, 59, 59)


def subtract_years(day: date, years: int) -> date:
    """Same calendar day N years earlier; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Same wall-clock time N months earlier, clamping the day to the month's end."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole elapsed days from earlier to later (partial days are dropped)."""
    return (later - earlier).days


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def next_day(day: date) -> date:
    return day + timedelta(days=1)


def to_local_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize business time without an offset (it is wall-clock time)."""
    if dt is None:
        return None
    return dt.replace(microsecond=0).isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
