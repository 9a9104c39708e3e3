from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError
from maidsflow_adapter.errors import InvalidDateError, InvalidTimeError, InvalidTimeWindowError, RecurrenceRuleError
from maidsflow_adapter.models import (
    AppointmentTemplate,
    CalendarDate,
    Forever,
    Frequency,
    OccurrenceCount,
    RecurrenceRule,
    TimeOfDay,
    UntilDate,
)
from maidsflow_adapter.recurrence import (
    FOREVER_OCCURRENCES,
    MAX_OCCURRENCES,
    build_rule,
    generate_occurrences,
    iter_occurrence_dates,
    recurrence_payload,
    validate_first_occurrence,
)

NEW_YORK = ZoneInfo("America/New_York")
ANCHOR = CalendarDate(year=2025, month=3, day=14)


def rule(frequency=Frequency.WEEKLY, anchor=ANCHOR, termination=None, start=TimeOfDay(hour=9), end=TimeOfDay(hour=11, minute=30)):
    return RecurrenceRule(
        frequency=frequency,
        anchor_date=anchor,
        time_of_day_start=start,
        time_of_day_end=end,
        termination=termination or Forever(),
    )


def until(y, m, d):
    return UntilDate(until=CalendarDate(year=y, month=m, day=d))


def test_anchor_is_emitted_even_when_until_precedes_it():
    dates = list(iter_occurrence_dates(rule(termination=until(2025, 3, 1))))
    assert dates == [date(2025, 3, 14)]


def test_weekly_until_is_inclusive():
    occs = generate_occurrences(rule(termination=until(2025, 4, 4)), "utc")
    assert [o.start.date() for o in occs] == [date(2025, 3, 14), date(2025, 3, 21), date(2025, 3, 28), date(2025, 4, 4)]
    assert occs[0].start == datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)
    assert occs[0].end == datetime(2025, 3, 14, 11, 30, tzinfo=timezone.utc)


def test_bi_weekly_steps_fourteen_days():
    dates = list(iter_occurrence_dates(rule(Frequency.BI_WEEKLY, CalendarDate(year=2025, month=1, day=1), OccurrenceCount(count=3))))
    assert dates == [date(2025, 1, 1), date(2025, 1, 15), date(2025, 1, 29)]


def test_monthly_from_the_31st_clamps_without_drifting():
    anchor = CalendarDate(year=2025, month=1, day=31)
    dates = list(iter_occurrence_dates(rule(Frequency.MONTHLY, anchor, OccurrenceCount(count=4))))
    assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]


def test_bimonthly_crosses_year_boundary():
    anchor = CalendarDate(year=2025, month=12, day=31)
    dates = list(iter_occurrence_dates(rule(Frequency.BIMONTHLY, anchor, OccurrenceCount(count=3))))
    assert dates == [date(2025, 12, 31), date(2026, 2, 28), date(2026, 4, 30)]


def test_forever_is_weekly_for_52_occurrences_whatever_the_frequency():
    anchor = CalendarDate(year=2025, month=1, day=1)
    dates = list(iter_occurrence_dates(rule(Frequency.MONTHLY, anchor, Forever())))
    assert len(dates) == FOREVER_OCCURRENCES == 52
    assert all(b - a == timedelta(days=7) for a, b in zip(dates, dates[1:]))
    assert dates[-1] == date(2025, 12, 24)


def test_far_future_until_is_capped():
    anchor = CalendarDate(year=2025, month=1, day=1)
    occs = generate_occurrences(rule(anchor=anchor, termination=until(2075, 1, 1)), "utc")
    assert len(occs) == MAX_OCCURRENCES == 200
    assert occs[-1].start.date() == date(2025, 1, 1) + timedelta(days=7 * 199)


def test_count_is_capped():
    assert len(generate_occurrences(rule(termination=OccurrenceCount(count=1000)), "utc")) == MAX_OCCURRENCES


@pytest.mark.parametrize("frequency", list(Frequency))
def test_output_is_ascending_and_unique(frequency):
    occs = generate_occurrences(rule(frequency, CalendarDate(year=2024, month=1, day=31), until(2026, 1, 31)), "utc")
    starts = [o.start for o in occs]
    assert starts == sorted(starts)
    assert len({s.date() for s in starts}) == len(starts)


def test_generator_does_not_check_time_window():
    occs = generate_occurrences(rule(termination=OccurrenceCount(count=2), start=TimeOfDay(hour=10), end=TimeOfDay(hour=9)), "utc")
    assert len(occs) == 2
    with pytest.raises(InvalidTimeWindowError):
        validate_first_occurrence(occs)


def test_build_rule_from_form_values():
    r = build_rule("Bi-Weekly", "14/03/2025", "09:00", "11:30", until="04/25/2025")
    assert r.frequency is Frequency.BI_WEEKLY
    assert r.anchor_date == ANCHOR
    assert r.termination == until(2025, 4, 25)
    assert len(generate_occurrences(r, "utc")) == 4


def test_build_rule_forever_and_count():
    assert isinstance(build_rule("weekly", "2025-03-14", until="Forever").termination, Forever)
    assert build_rule("monthly", "2025-03-14", count=6).termination == OccurrenceCount(count=6)
    assert build_rule("biweekly", "2025-03-14", count=2).frequency is Frequency.BI_WEEKLY


def test_build_rule_defaults_times_to_midnight():
    r = build_rule("weekly", "2025-03-14", until="forever")
    assert r.time_of_day_start == TimeOfDay(hour=0, minute=0)
    assert r.time_of_day_end == TimeOfDay(hour=0, minute=0)


@pytest.mark.parametrize(
    "kwargs, error",
    [
        ({"anchor": "nonsense", "until": "forever"}, InvalidDateError),
        ({"anchor": "2025-03-14", "until": "nonsense"}, InvalidDateError),
        ({"anchor": "2025-03-14", "until": "forever", "start_time": "25:00"}, InvalidTimeError),
        ({"anchor": "2025-03-14"}, RecurrenceRuleError),
        ({"anchor": "2025-03-14", "count": 0}, RecurrenceRuleError),
        ({"anchor": "2025-03-14", "until": "forever", "frequency": "daily"}, RecurrenceRuleError),
    ],
)
def test_build_rule_errors(kwargs, error):
    kwargs.setdefault("frequency", "weekly")
    with pytest.raises(error):
        build_rule(**kwargs)


def test_rule_is_immutable():
    r = rule()
    with pytest.raises(ValidationError):
        r.frequency = Frequency.MONTHLY


def test_recurrence_payload_for_weekly_series():
    template = AppointmentTemplate(title="Deep clean", address="12 Elm St", company_id=7, customer_id=311, status=1, type=2)
    payload = recurrence_payload(rule(termination=until(2025, 4, 4)), template, "utc")
    body = payload.model_dump(by_alias=True)
    assert body["frequency"] == 1
    assert body["day"] == 5  # Friday, Sunday-based
    assert body["time"] == {"ticks": 9 * 3600 * 10_000_000}
    assert body["duration"] == 150
    assert body["startDate"] == "2025-03-14T09:00:00.000Z"
    assert body["endDate"] == "2025-04-04T11:30:00.000Z"
    assert body["customerId"] == 311


def test_recurrence_payload_rejects_bi_weekly():
    template = AppointmentTemplate(company_id=7, customer_id=311)
    with pytest.raises(RecurrenceRuleError):
        recurrence_payload(rule(Frequency.BI_WEEKLY, termination=OccurrenceCount(count=2)), template, "utc")


def test_local_clock_series_crosses_dst_at_same_wall_clock():
    r = build_rule("weekly", "2025-03-02", "09:00", "10:00", until="2025-03-16")
    occs = generate_occurrences(r, "local-clock", NEW_YORK)
    assert [o.start.hour for o in occs] == [14, 13, 13]
    for occ in occs:
        assert occ.start.tzinfo is not None
        assert occ.start.astimezone(NEW_YORK).hour == 9
        assert occ.end.astimezone(NEW_YORK).hour == 10


def test_expansion_stops_at_the_last_representable_date():
    r = build_rule("weekly", "9999-12-25", "09:00", "10:00", until="forever")
    assert [o.start.date() for o in generate_occurrences(r, "utc")] == [date(9999, 12, 25)]
    monthly = rule(Frequency.MONTHLY, CalendarDate(year=9999, month=11, day=30), OccurrenceCount(count=5))
    assert list(iter_occurrence_dates(monthly)) == [date(9999, 11, 30), date(9999, 12, 30)]
