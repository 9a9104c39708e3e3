"""Date-only parsing, time-of-day parsing and instant composition.

Two conventions exist for turning a calendar date plus an ``HH:mm`` string into
an instant:

* ``utc`` - the hour/minute is already UTC clock time.
* ``local-clock`` - the hour/minute is wall-clock time in a configured zone.

One convention is chosen per process (``MAIDSFLOW_TIME_CONVENTION``) and used
for single appointments and recurring series alike.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from . import config
from .errors import InvalidDateError, InvalidTimeError
from .models import MIDNIGHT, CalendarDate, TimeOfDay

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_SLASH_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


class Convention(str, Enum):
    UTC = "utc"
    LOCAL_CLOCK = "local-clock"


def parse_calendar_date(text: str | None) -> CalendarDate | None:
    """Parse ``YYYY-MM-DD`` or ``NN/NN/YYYY`` into a CalendarDate.

    Slash dates are read day-first only when the first group is above 12,
    otherwise month-first. Returns None when neither shape matches or the
    numbers do not form a real date.
    """
    if not text:
        return None
    text = text.strip()
    m = _ISO_DATE.match(text)
    if m:
        y, mo, d = (int(g) for g in m.groups())
    else:
        m = _SLASH_DATE.match(text)
        if not m:
            return None
        a, b, y = (int(g) for g in m.groups())
        if a > 12:
            d, mo = a, b
        else:
            mo, d = a, b
    try:
        return CalendarDate(year=y, month=mo, day=d)
    except ValidationError:
        return None


def resolve_calendar_date(text: str | None) -> CalendarDate:
    """Like parse_calendar_date, falling back to dateutil's free-form parser."""
    parsed = parse_calendar_date(text)
    if parsed is not None:
        return parsed
    if not text or not text.strip():
        raise InvalidDateError(text)
    try:
        # parse against two defaults; any component taken from a default differs
        first = date_parser.parse(text, default=_DEFAULT_A).date()
        second = date_parser.parse(text, default=_DEFAULT_B).date()
    except (ValueError, OverflowError) as exc:
        raise InvalidDateError(text) from exc
    if first != second:
        raise InvalidDateError(text)
    return CalendarDate.from_date(first)


def parse_time_of_day(text: str | None) -> TimeOfDay:
    """Parse ``HH:mm``; missing input means midnight."""
    if text is None or not text.strip():
        return MIDNIGHT
    m = _TIME.match(text.strip())
    if not m:
        raise InvalidTimeError(text)
    try:
        return TimeOfDay(hour=int(m.group(1)), minute=int(m.group(2)))
    except ValidationError as exc:
        raise InvalidTimeError(text) from exc


def get_convention(value: Convention | str | None = None) -> Convention:
    return Convention(value or config.TIME_CONVENTION)


def local_zone() -> tzinfo:
    return ZoneInfo(config.TIMEZONE)


def compose_instant(
    day: CalendarDate,
    time: TimeOfDay,
    convention: Convention | str | None = None,
    tz: tzinfo | None = None,
) -> datetime:
    """Combine a date and a time of day into an aware UTC datetime."""
    convention = get_convention(convention)
    if convention is Convention.UTC:
        return datetime(day.year, day.month, day.day, time.hour, time.minute, tzinfo=timezone.utc)
    wall = datetime(day.year, day.month, day.day, time.hour, time.minute, tzinfo=tz or local_zone())
    return wall.astimezone(timezone.utc)


def decompose_instant(
    instant: datetime,
    convention: Convention | str | None = None,
    tz: tzinfo | None = None,
) -> tuple[CalendarDate, TimeOfDay]:
    """Inverse of compose_instant under the same convention."""
    convention = get_convention(convention)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    target = timezone.utc if convention is Convention.UTC else (tz or local_zone())
    local = instant.astimezone(target)
    return CalendarDate.from_date(local.date()), TimeOfDay(hour=local.hour, minute=local.minute)


def add_months(d: date, months: int) -> date:
    """Calendar-month arithmetic; the day is clamped to the target month's length."""
    return d + relativedelta(months=months)


def format_instant(instant: datetime) -> str:
    """Render as ``YYYY-MM-DDTHH:MM:SS.000Z``."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
