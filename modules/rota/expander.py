"""
modules/rota/expander.py

Recurrence expansion for a single pattern plus removal of per-pattern
exception dates.

Weekdays follow the store convention (0 = Sunday). Biweekly parity is pinned
to each pattern's own start week, measured between Monday-anchored weeks, so
two patterns that start a week apart never share an occurrence week.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import AbstractSet, Dict, FrozenSet, Iterable, Iterator, List, Optional

from models.patterns import PatternException, RecurrenceInterval, RecurrencePattern, sunday_weekday
from modules.rota.dates import each_day, monday_of, week_of_month


@dataclass(frozen=True)
class Occurrence:
    """One concrete date of a pattern."""
    pattern_id: str
    date: date
    start_time: time
    end_time: time

    @property
    def start(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def end(self) -> datetime:
        return datetime.combine(self.date, self.end_time)


def occurs_on(pattern: RecurrencePattern, day: date) -> bool:
    """True when `pattern` produces an occurrence on `day`, ignoring exceptions."""
    if day < pattern.start_date:
        return False
    if pattern.end_date is not None and day > pattern.end_date:
        return False

    interval = pattern.recurrence_interval
    if interval == RecurrenceInterval.DAILY:
        return True

    if sunday_weekday(day) not in pattern.days_of_week:
        return False

    if interval in (RecurrenceInterval.WEEKLY, RecurrenceInterval.ONE_OFF):
        return True
    if interval == RecurrenceInterval.BIWEEKLY:
        weeks_apart = (monday_of(day) - monday_of(pattern.start_date)).days // 7
        return weeks_apart % 2 == 0
    if interval == RecurrenceInterval.MONTHLY:
        return week_of_month(day) == week_of_month(pattern.start_date)
    return False


class PatternExpansion:
    """
    Restartable occurrence sequence for one pattern over a closed window.

    Iterating twice yields the same occurrences; nothing is cached between
    iterations.
    """

    def __init__(self, pattern: RecurrencePattern, window_start: date, window_end: date):
        self.pattern = pattern
        self.window_start = max(window_start, pattern.start_date)
        self.window_end = window_end if pattern.end_date is None else min(window_end, pattern.end_date)

    def __iter__(self) -> Iterator[Occurrence]:
        for day in each_day(self.window_start, self.window_end):
            if occurs_on(self.pattern, day):
                yield Occurrence(
                    pattern_id=self.pattern.id,
                    date=day,
                    start_time=self.pattern.start_time,
                    end_time=self.pattern.end_time,
                )


def expand_pattern(pattern: RecurrencePattern, window_start: date, window_end: date) -> PatternExpansion:
    return PatternExpansion(pattern, window_start, window_end)


def exception_index(exceptions: Iterable[PatternException]) -> Dict[str, FrozenSet[date]]:
    """Group exception dates by pattern id."""
    grouped: Dict[str, set] = {}
    for exc in exceptions:
        grouped.setdefault(exc.pattern_id, set()).add(exc.exception_date)
    return {pattern_id: frozenset(days) for pattern_id, days in grouped.items()}


def apply_exceptions(
    occurrences: Iterable[Occurrence],
    excluded_dates: Optional[AbstractSet[date]],
) -> Iterator[Occurrence]:
    """Drop occurrences whose date was deleted for that pattern."""
    if not excluded_dates:
        yield from occurrences
        return
    for occurrence in occurrences:
        if occurrence.date not in excluded_dates:
            yield occurrence


def pattern_occurrences(
    pattern: RecurrencePattern,
    window_start: date,
    window_end: date,
    exceptions_by_pattern: Optional[Dict[str, FrozenSet[date]]] = None,
) -> List[Occurrence]:
    excluded = (exceptions_by_pattern or {}).get(pattern.id)
    return list(apply_exceptions(expand_pattern(pattern, window_start, window_end), excluded))


def count_working_days(
    start: date,
    end: date,
    patterns: Iterable[RecurrencePattern],
    exceptions: Iterable[PatternException] = (),
) -> int:
    """Number of distinct dates in [start, end] on which any standard pattern occurs."""
    by_pattern = exception_index(exceptions)
    working = set()
    for pattern in patterns:
        if pattern.is_overtime:
            continue
        for occurrence in pattern_occurrences(pattern, start, end, by_pattern):
            working.add(occurrence.date)
    return len(working)
