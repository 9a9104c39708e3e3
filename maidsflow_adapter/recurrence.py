"""Expansion of a recurring appointment into dated occurrences."""
from __future__ import annotations

from datetime import date, timedelta, tzinfo
from typing import Iterator

from . import dates
from .errors import InvalidTimeWindowError, RecurrenceRuleError
from .models import (
    AppointmentTemplate,
    CalendarDate,
    Forever,
    Frequency,
    Occurrence,
    OccurrenceCount,
    RecurrencePayload,
    RecurrenceRule,
    TimeOfDay,
    UntilDate,
)

MAX_OCCURRENCES = 200
FOREVER_OCCURRENCES = 52  # one year of weekly visits

# Backend enum for POST /Recurrence
_BACKEND_FREQUENCY = {
    Frequency.WEEKLY: 1,
    Frequency.MONTHLY: 2,
    Frequency.BIMONTHLY: 3,
}
_TICKS_PER_SECOND = 10_000_000


def parse_frequency(value: Frequency | str) -> Frequency:
    if isinstance(value, Frequency):
        return value
    key = str(value).strip().lower().replace("_", "-").replace(" ", "-")
    if key == "biweekly":
        key = "bi-weekly"
    try:
        return Frequency(key)
    except ValueError as exc:
        raise RecurrenceRuleError(f"Unknown recurrence frequency: {value!r}") from exc


def build_rule(
    frequency: Frequency | str,
    anchor: str,
    start_time: str | None = None,
    end_time: str | None = None,
    until: str | None = None,
    count: int | None = None,
) -> RecurrenceRule:
    """Build a RecurrenceRule from raw form values.

    ``until`` is either a date string or the literal ``"forever"``; ``count``
    is used only when ``until`` is absent.
    """
    termination: UntilDate | OccurrenceCount | Forever
    if until and until.strip().lower() == "forever":
        termination = Forever()
    elif until:
        termination = UntilDate(until=dates.resolve_calendar_date(until))
    elif count is not None:
        if count < 1:
            raise RecurrenceRuleError("Occurrence count must be at least 1")
        termination = OccurrenceCount(count=count)
    else:
        raise RecurrenceRuleError("Please select a repeat until date or choose 'Forever'.")

    return RecurrenceRule(
        frequency=parse_frequency(frequency),
        anchor_date=dates.resolve_calendar_date(anchor),
        time_of_day_start=dates.parse_time_of_day(start_time),
        time_of_day_end=dates.parse_time_of_day(end_time),
        termination=termination,
    )


def _advance(anchor: date, frequency: Frequency, step: int) -> date:
    # month steps are measured from the anchor so a clamped day does not drift
    if frequency is Frequency.WEEKLY:
        return anchor + timedelta(days=7 * step)
    if frequency is Frequency.BI_WEEKLY:
        return anchor + timedelta(days=14 * step)
    if frequency is Frequency.MONTHLY:
        return dates.add_months(anchor, step)
    return dates.add_months(anchor, 2 * step)


def iter_occurrence_dates(rule: RecurrenceRule) -> Iterator[date]:
    """Yield the calendar dates of a series, anchor first, ascending."""
    anchor = rule.anchor_date.to_date()
    frequency = rule.frequency
    until: date | None = None
    term = rule.termination

    if isinstance(term, Forever):
        # open-ended series are always weekly, whatever frequency was picked
        frequency = Frequency.WEEKLY
        limit = FOREVER_OCCURRENCES
    elif isinstance(term, OccurrenceCount):
        limit = min(term.count, MAX_OCCURRENCES)
    else:
        limit = MAX_OCCURRENCES
        until = term.until.to_date()

    yield anchor
    for step in range(1, limit):
        try:
            current = _advance(anchor, frequency, step)
        except (OverflowError, ValueError):
            # past year 9999
            return
        if until is not None and current > until:
            return
        yield current


def compose_occurrence(
    day: CalendarDate,
    start: TimeOfDay,
    end: TimeOfDay,
    convention: dates.Convention | str | None = None,
    tz: tzinfo | None = None,
) -> Occurrence:
    return Occurrence(
        start=dates.compose_instant(day, start, convention, tz),
        end=dates.compose_instant(day, end, convention, tz),
    )


def generate_occurrences(
    rule: RecurrenceRule,
    convention: dates.Convention | str | None = None,
    tz: tzinfo | None = None,
) -> list[Occurrence]:
    """Expand ``rule`` into (start, end) pairs, one per date.

    Never returns more than MAX_OCCURRENCES items, nor more than
    FOREVER_OCCURRENCES for an open-ended rule.
    """
    convention = dates.get_convention(convention)
    return [
        compose_occurrence(CalendarDate.from_date(d), rule.time_of_day_start, rule.time_of_day_end, convention, tz)
        for d in iter_occurrence_dates(rule)
    ]


def validate_first_occurrence(occurrences: list[Occurrence]) -> Occurrence:
    """Check the time window once, against the first occurrence only."""
    if not occurrences:
        raise RecurrenceRuleError("No occurrences could be generated. Please check your dates.")
    first = occurrences[0]
    if first.end <= first.start:
        raise InvalidTimeWindowError("End time must be after start time.")
    return first


def recurrence_payload(
    rule: RecurrenceRule,
    template: AppointmentTemplate,
    convention: dates.Convention | str | None = None,
    tz: tzinfo | None = None,
) -> RecurrencePayload:
    """Describe ``rule`` as the backend's own recurrence record."""
    frequency = Frequency.WEEKLY if isinstance(rule.termination, Forever) else rule.frequency
    if frequency not in _BACKEND_FREQUENCY:
        raise RecurrenceRuleError(f"Backend recurrences do not support {frequency.value!r}")
    if template.company_id is None:
        raise RecurrenceRuleError("Company context not found")

    start, end = rule.time_of_day_start, rule.time_of_day_end
    duration = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    if duration <= 0:
        raise InvalidTimeWindowError("End time must be after start time.")

    anchor = rule.anchor_date.to_date()
    if frequency is Frequency.WEEKLY:
        day = (anchor.weekday() + 1) % 7  # Sun=0
    else:
        day = anchor.day

    last = CalendarDate.from_date(list(iter_occurrence_dates(rule))[-1])
    return RecurrencePayload(
        title=template.title,
        customer_id=template.customer_id,
        address=template.address,
        team_id=template.team_id,
        company_id=template.company_id,
        frequency=_BACKEND_FREQUENCY[frequency],
        day=day,
        time={"ticks": (start.hour * 3600 + start.minute * 60) * _TICKS_PER_SECOND},
        duration=duration,
        status=template.status,
        type=template.type,
        start_date=dates.format_instant(dates.compose_instant(rule.anchor_date, start, convention, tz)),
        end_date=dates.format_instant(dates.compose_instant(last, end, convention, tz)),
        notes=template.notes,
    )
