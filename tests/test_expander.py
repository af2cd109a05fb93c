from datetime import date, datetime, time

import pytest
from pydantic import ValidationError

from models.patterns import PatternException, RecurrencePattern, validate_pattern
from modules.rota.errors import MalformedPatternError
from modules.rota.expander import (
    count_working_days,
    exception_index,
    expand_pattern,
    occurs_on,
    pattern_occurrences,
)


def _pattern(**overrides) -> RecurrencePattern:
    row = {
        "id": "p1",
        "user_id": "alice",
        "client_name": "Mrs Hughes",
        "days_of_week": [1, 3],
        "start_time": "09:00",
        "end_time": "17:00",
        "start_date": "2024-01-01",
        "end_date": None,
        "recurrence_interval": "weekly",
    }
    row.update(overrides)
    return RecurrencePattern.model_validate(row)


def test_weekly_mondays_and_wednesdays_over_january():
    pattern = _pattern()
    dates = [o.date for o in expand_pattern(pattern, date(2024, 1, 1), date(2024, 1, 31))]

    assert dates == [
        date(2024, 1, 1), date(2024, 1, 3),
        date(2024, 1, 8), date(2024, 1, 10),
        date(2024, 1, 15), date(2024, 1, 17),
        date(2024, 1, 22), date(2024, 1, 24),
        date(2024, 1, 29), date(2024, 1, 31),
    ]


def test_occurrence_carries_naive_timestamps():
    occurrence = next(iter(expand_pattern(_pattern(), date(2024, 1, 1), date(2024, 1, 1))))

    assert occurrence.start == datetime(2024, 1, 1, 9, 0)
    assert occurrence.end == datetime(2024, 1, 1, 17, 0)
    assert occurrence.start.tzinfo is None


def test_expansion_is_restartable():
    expansion = expand_pattern(_pattern(), date(2024, 1, 1), date(2024, 1, 14))

    assert list(expansion) == list(expansion)
    assert len(list(expansion)) == 4


def test_window_is_clamped_to_validity():
    pattern = _pattern(start_date="2024-01-10", end_date="2024-01-20")
    dates = [o.date for o in expand_pattern(pattern, date(2024, 1, 1), date(2024, 1, 31))]

    assert dates == [date(2024, 1, 10), date(2024, 1, 15), date(2024, 1, 17)]


def test_biweekly_parity_is_pinned_to_each_pattern():
    first = _pattern(id="a", recurrence_interval="biweekly", days_of_week=[1], start_date="2024-01-01")
    second = _pattern(id="b", recurrence_interval="biweekly", days_of_week=[1], start_date="2024-01-08")

    first_dates = [o.date for o in expand_pattern(first, date(2024, 1, 1), date(2024, 2, 29))]
    second_dates = [o.date for o in expand_pattern(second, date(2024, 1, 1), date(2024, 2, 29))]

    assert first_dates == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29), date(2024, 2, 12), date(2024, 2, 26)]
    assert second_dates == [date(2024, 1, 8), date(2024, 1, 22), date(2024, 2, 5), date(2024, 2, 19)]
    assert not set(first_dates) & set(second_dates)


def test_biweekly_start_midweek_uses_monday_anchored_weeks():
    # Starts on a Thursday; the following Monday is already in the next week
    pattern = _pattern(recurrence_interval="biweekly", days_of_week=[1, 4], start_date="2024-01-04")

    assert occurs_on(pattern, date(2024, 1, 4))
    assert not occurs_on(pattern, date(2024, 1, 8))
    assert occurs_on(pattern, date(2024, 1, 15))
    assert occurs_on(pattern, date(2024, 1, 18))


def test_monthly_matches_week_of_month():
    # 2024-01-09 is the second Tuesday
    pattern = _pattern(recurrence_interval="monthly", days_of_week=[2], start_date="2024-01-09")
    dates = [o.date for o in expand_pattern(pattern, date(2024, 1, 1), date(2024, 4, 30))]

    assert dates == [date(2024, 1, 9), date(2024, 2, 13), date(2024, 3, 12), date(2024, 4, 9)]


def test_daily_ignores_stored_weekdays():
    pattern = _pattern(recurrence_interval="daily", days_of_week=[])

    assert pattern.days_of_week == [0, 1, 2, 3, 4, 5, 6]
    assert len(list(expand_pattern(pattern, date(2024, 1, 1), date(2024, 1, 7)))) == 7


def test_one_off_covers_exactly_its_range():
    pattern = _pattern(recurrence_interval="one_off", days_of_week=[], start_date="2024-01-05", end_date="2024-01-07")
    dates = [o.date for o in expand_pattern(pattern, date(2024, 1, 1), date(2024, 1, 31))]

    assert pattern.days_of_week == [0, 5, 6]
    assert dates == [date(2024, 1, 5), date(2024, 1, 6), date(2024, 1, 7)]


def test_one_off_weekdays_derived_from_date_objects_on_frozen_pattern():
    pattern = RecurrencePattern(
        id="p2",
        user_id="alice",
        client_name="Mrs Hughes",
        start_time=time(9, 0),
        end_time=time(17, 0),
        start_date=date(2024, 1, 5),
        end_date=date(2024, 1, 7),
        recurrence_interval="one_off",
    )

    assert pattern.days_of_week == [0, 5, 6]
    with pytest.raises(ValidationError):
        pattern.days_of_week = [1]
    assert RecurrencePattern.model_validate(pattern.model_dump(by_alias=True)).days_of_week == [0, 5, 6]


def test_empty_weekday_set_yields_nothing():
    pattern = _pattern(days_of_week=[])

    assert list(expand_pattern(pattern, date(2024, 1, 1), date(2024, 1, 31))) == []


def test_exception_drops_single_occurrence():
    pattern = _pattern()
    exceptions = exception_index([PatternException(pattern_id="p1", exception_date=date(2024, 1, 3))])

    dates = [o.date for o in pattern_occurrences(pattern, date(2024, 1, 1), date(2024, 1, 7), exceptions)]

    assert dates == [date(2024, 1, 1)]


def test_exceptions_of_other_patterns_are_ignored():
    pattern = _pattern()
    exceptions = exception_index([PatternException(pattern_id="other", exception_date=date(2024, 1, 3))])

    assert len(pattern_occurrences(pattern, date(2024, 1, 1), date(2024, 1, 7), exceptions)) == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"days_of_week": [7]},
        {"start_time": "17:00", "end_time": "09:00"},
        {"start_time": "09:00", "end_time": "09:00"},
        {"start_date": "2024-02-01", "end_date": "2024-01-01"},
        {"recurrence_interval": "one_off", "end_date": None},
    ],
)
def test_malformed_patterns_are_rejected(overrides):
    row = {
        "id": "bad",
        "user_id": "alice",
        "client_name": "Mrs Hughes",
        "days_of_week": [1],
        "start_time": "09:00",
        "end_time": "17:00",
        "start_date": "2024-01-01",
        "recurrence_interval": "weekly",
    }
    row.update(overrides)

    with pytest.raises(MalformedPatternError) as exc_info:
        validate_pattern(row)
    assert exc_info.value.details["pattern_id"] == "bad"


def test_count_working_days_skips_overtime_and_exceptions():
    standard = _pattern()
    overtime = _pattern(id="ot", days_of_week=[5], is_overtime=True)
    exceptions = [PatternException(pattern_id="p1", exception_date=date(2024, 1, 10))]

    assert count_working_days(date(2024, 1, 1), date(2024, 1, 14), [standard, overtime], exceptions) == 3


def test_pattern_times_parse_from_store_strings():
    pattern = _pattern(start_time="07:30:00", end_time="15:00:00")

    assert pattern.start_time == time(7, 30)
    assert pattern.end_time == time(15, 0)
