from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.errors import ParseError


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Map an IANA zone name to a tzinfo. Empty means UTC.
    Raises ValueError for unknown names.
    """
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"unknown timezone: {name!r}") from e


def parse_timestamp(value: Any, tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """
    Parse a trade timestamp into an aware datetime expressed in `tz`.

    Accepts datetimes, dates and ISO-8601 strings (Supabase returns
    "2024-01-15T09:30:00+00:00"; the mobile app used to write date-only
    "2024-01-15"). Aware values are converted into `tz`; naive values and
    bare dates are taken as wall time in `tz`.

    None and "" give None. Anything else that doesn't parse raises ParseError.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError as e:
            raise ParseError(value) from e
    else:
        raise ParseError(value, reason="unsupported timestamp type")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def local_day(value: Any, tz: tzinfo = timezone.utc) -> Optional[date]:
    dt = parse_timestamp(value, tz)
    return dt.date() if dt is not None else None


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month."""
    start = date(year, month, 1)
    if month == 12:
        nxt = date(year + 1, 1, 1)
    else:
        nxt = date(year, month + 1, 1)
    return start, nxt - timedelta(days=1)


def month_start(day: date) -> date:
    return day.replace(day=1)


def previous_month_start(day: date) -> date:
    first = month_start(day)
    return month_start(first - timedelta(days=1))


def shift_months(day: date, months: int) -> date:
    """Move back or forward by whole months, clamping to the month's last day."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    _, last = month_bounds(year, month + 1)
    return date(year, month + 1, min(day.day, last.day))


def week_start_sunday(day: date) -> date:
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_end_saturday(day: date) -> date:
    return day + timedelta(days=(5 - day.weekday()) % 7)


def day_start(day: date, tz: tzinfo = timezone.utc) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)
