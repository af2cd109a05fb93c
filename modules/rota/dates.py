import calendar
from datetime import date, timedelta
from typing import Iterator, Optional, Tuple


def each_day(start: date, end: date) -> Iterator[date]:
    """Yield every date in the closed range [start, end]."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def monday_of(day: date) -> date:
    """Return the Monday for the provided date."""
    return day - timedelta(days=day.weekday())


def week_of_month(day: date) -> int:
    """1-7 = week 1, 8-14 = week 2, etc."""
    return (day.day + 6) // 7


def month_bounds(day: date) -> Tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def add_months(day: date, months: int) -> date:
    """First of the month `months` after the month containing `day`."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def clip(start: date, end: date, lower: date, upper: date) -> Optional[Tuple[date, date]]:
    """Intersect [start, end] with [lower, upper]; None when disjoint."""
    lo = max(start, lower)
    hi = min(end, upper)
    if lo > hi:
        return None
    return lo, hi
