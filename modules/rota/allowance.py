"""
modules/rota/allowance.py

Leave-year arithmetic. The leave year runs from the first day of the
configured start month (June by default) to the day before the same date a
year later.
"""

from datetime import date, timedelta
from typing import Iterable, Optional, Tuple

from config.settings import ROTA_SETTINGS, RotaSettings
from models.payroll import CompensationProfile
from models.requests import LeaveRecord


def leave_year_bounds(day: date, start_month: int = 6) -> Tuple[date, date]:
    """Leave year containing `day`."""
    year = day.year if day.month >= start_month else day.year - 1
    start = date(year, start_month, 1)
    end = date(year + 1, start_month, 1) - timedelta(days=1)
    return start, end


def previous_leave_year(day: date, start_month: int = 6) -> Tuple[date, date]:
    """Leave year that closed most recently before the one containing `day`."""
    start, _ = leave_year_bounds(day, start_month)
    return leave_year_bounds(start - timedelta(days=1), start_month)


def _anniversary_reached(tenure_start: date, on: date) -> bool:
    try:
        anniversary = tenure_start.replace(year=tenure_start.year + 1)
    except ValueError:
        # Feb 29 start
        anniversary = date(tenure_start.year + 1, 3, 1)
    return on >= anniversary


def annual_allowance(
    profile: CompensationProfile,
    year_end: date,
    settings: RotaSettings = ROTA_SETTINGS,
) -> float:
    if profile.annual_leave_allowance is not None:
        return float(profile.annual_leave_allowance)
    if profile.tenure_start and _anniversary_reached(profile.tenure_start, year_end):
        return settings.tenured_leave_allowance
    return settings.default_leave_allowance


def accrued_allowance(
    profile: CompensationProfile,
    year_start: date,
    year_end: date,
    settings: RotaSettings = ROTA_SETTINGS,
) -> float:
    """
    Allowance earned over a whole leave year.

    Staff who started inside the year accrue pro rata by days employed,
    rounded to one decimal. Staff who started after it accrue nothing.
    """
    allowance = annual_allowance(profile, year_end, settings)
    tenure_start = profile.tenure_start
    if tenure_start is None or tenure_start <= year_start:
        return allowance
    if tenure_start > year_end:
        return 0.0

    total_days = (year_end - year_start).days + 1
    employed_days = (year_end - tenure_start).days + 1
    return round(allowance * min(employed_days / total_days, 1.0), 1)


def leave_days_taken(
    leave_records: Iterable[LeaveRecord],
    year_start: date,
    year_end: date,
    subject_id: Optional[str] = None,
) -> float:
    """Days charged for approved holiday-type leave starting inside the leave year."""
    total = 0.0
    for record in leave_records:
        if subject_id is not None and record.subject_id != subject_id:
            continue
        if not record.is_approved or record.absence_type != "holiday":
            continue
        if year_start <= record.start_date <= year_end:
            total += record.days_charged
    return total
