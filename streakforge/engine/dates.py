"""
streakforge.engine.dates — Calendar-Day Arithmetic
===================================================

All evidence is keyed by ``YYYY-MM-DD`` strings in one fixed timezone.
Arithmetic happens on :class:`datetime.date` values, which carry no clock
and no offset, so daylight-saving transitions and UTC drift cannot shift
a day boundary.  Only :func:`today_ymd` ever looks at a wall clock.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from streakforge.constants import DEFAULT_TIMEZONE

__all__ = [
    "add_days",
    "date_range",
    "diff_days",
    "get_default_timezone",
    "is_valid_ymd",
    "parse_ymd",
    "set_default_timezone",
    "today_ymd",
    "yesterday_ymd",
]

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Zone used by every today_ymd() call that does not name one; set at bootstrap
_default_tz = DEFAULT_TIMEZONE


def parse_ymd(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Raises
    ------
    ValueError
        If *value* is not a real calendar date in that exact format.
    """
    if not isinstance(value, str) or not _YMD_RE.match(value):
        raise ValueError(f"Invalid date format: {value!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(value)


def is_valid_ymd(value: str) -> bool:
    try:
        parse_ymd(value)
    except ValueError:
        return False
    return True


def add_days(value: str, delta_days: int) -> str:
    """Shift *value* by *delta_days* calendar days (negative goes back)."""
    return (parse_ymd(value) + timedelta(days=delta_days)).isoformat()


def diff_days(a: str, b: str) -> int:
    """Whole calendar days from *b* to *a* (``a - b``)."""
    return (parse_ymd(a) - parse_ymd(b)).days


def date_range(start: str, end: str) -> Iterator[str]:
    """Yield every date from *start* to *end* inclusive (nothing if end < start)."""
    current = parse_ymd(start)
    last = parse_ymd(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


def set_default_timezone(tz: str) -> None:
    """Make *tz* the zone for every "today" the services compute.

    Raises
    ------
    ValueError
        If *tz* is not a known IANA zone name.
    """
    global _default_tz
    try:
        ZoneInfo(tz)
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz!r}") from exc
    _default_tz = tz


def get_default_timezone() -> str:
    return _default_tz


def today_ymd(tz: str | None = None, *, now: datetime | None = None) -> str:
    """Today's calendar date in *tz* (default: the configured zone).

    *now* may be an aware datetime in any zone (tests pin it); naive values
    are treated as UTC.
    """
    zone = ZoneInfo(tz or _default_tz)
    if now is None:
        return datetime.now(zone).date().isoformat()
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(zone).date().isoformat()


def yesterday_ymd(today: str) -> str:
    return add_days(today, -1)
