"""
modules/rota/payroll.py

Twelve-month forward pay projection for one staff member.

Every figure is derived from the monthly base salary through a flat daily
rate (monthly base / working days per month):
- shifts on public holidays earn an extra half day each
- overtime days are paid at time and a half
- at the leave-year rollover, unused accrued leave is paid out and leave taken
  beyond the accrued allowance is deducted
"""

import logging
from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence, Set

from config.settings import ROTA_SETTINGS, RotaSettings
from models.payroll import (
    CompensationProfile,
    HolidayShift,
    MonthlyPayPreview,
    PayRecord,
    RecurringBonus,
)
from models.requests import ApprovalStatus, ExceptionRequest, LeaveRecord, RequestKind
from modules.rota.allowance import accrued_allowance, leave_days_taken, previous_leave_year
from modules.rota.dates import add_months, clip, each_day, month_bounds

logger = logging.getLogger(__name__)

HOLIDAY_SHIFT_MULTIPLIER = 0.5
OVERTIME_MULTIPLIER = 1.5

# Months per pay period, as used when converting a salary to a monthly figure
MONTHLY_FACTORS = {
    "weekly": 4.33,
    "bi-weekly": 2.17,
    "monthly": 1.0,
}


def monthly_base(profile: CompensationProfile) -> float:
    if profile.pay_frequency == "annual":
        return profile.base_salary / 12
    return profile.base_salary * MONTHLY_FACTORS[profile.pay_frequency]


def _in_month(day: date, month_start: date, month_end: date) -> bool:
    return month_start <= day <= month_end


def holiday_shifts_in(
    instances: Sequence,
    holidays: Mapping[date, str],
    month_start: date,
    month_end: date,
) -> List[HolidayShift]:
    worked: Set[date] = {
        i.shift_date
        for i in instances
        if i.origin in ("manual", "pattern")
        and not i.suppressed
        and _in_month(i.shift_date, month_start, month_end)
        and i.shift_date in holidays
    }
    return [HolidayShift(date=day, holiday_name=holidays[day]) for day in sorted(worked)]


def overtime_days_in(
    instances: Sequence,
    requests: Iterable[ExceptionRequest],
    month_start: date,
    month_end: date,
) -> Set[date]:
    days: Set[date] = set()
    for request in requests:
        if request.kind != RequestKind.OVERTIME or request.status != ApprovalStatus.APPROVED:
            continue
        span = clip(request.start_date, request.end_date, month_start, month_end)
        if span:
            days.update(each_day(*span))
    for instance in instances:
        if instance.origin == "pattern" and instance.is_overtime and not instance.suppressed:
            if _in_month(instance.shift_date, month_start, month_end):
                days.add(instance.shift_date)
    return days


def payroll_status(
    month_start: date,
    month_end: date,
    pay_records: Iterable[PayRecord],
    now: date,
    cutoff_day: int,
) -> str:
    if any(r.record_type == "salary" and _in_month(r.pay_date, month_start, month_end) for r in pay_records):
        return "paid"
    if month_end < now:
        return "ready"
    if _in_month(now, month_start, month_end) and now.day > cutoff_day:
        return "ready"
    return "pending"


def forecast_pay(
    profile: Optional[CompensationProfile],
    instances: Sequence,
    requests: Iterable[ExceptionRequest],
    bonuses: Iterable[RecurringBonus],
    pay_records: Iterable[PayRecord],
    holidays: Mapping[date, str],
    leave_records: Iterable[LeaveRecord],
    now: date,
    settings: RotaSettings = ROTA_SETTINGS,
) -> List[MonthlyPayPreview]:
    """
    Project pay for `settings.forecast_months` months starting with `now`'s month.

    Returns an empty list when there is no profile or no base salary to
    project from.
    """
    if profile is None or not profile.base_salary:
        logger.info("No compensation profile to forecast from, returning empty forecast")
        return []

    subject_id = profile.subject_id
    instances = [i for i in instances if i.subject_id == subject_id]
    requests = [r for r in requests if r.subject_id == subject_id]
    bonuses = [b for b in bonuses if b.subject_id == subject_id]
    pay_records = [r for r in pay_records if r.subject_id == subject_id]
    leave_records = [r for r in leave_records if r.subject_id == subject_id]

    base = monthly_base(profile)
    daily_rate = base / settings.working_days_per_month

    previews: List[MonthlyPayPreview] = []
    for offset in range(settings.forecast_months):
        month_start, month_end = month_bounds(add_months(now, offset))

        holiday_shifts = holiday_shifts_in(instances, holidays, month_start, month_end)
        holiday_bonus = len(holiday_shifts) * HOLIDAY_SHIFT_MULTIPLIER * daily_rate

        recurring = sum(b.amount for b in bonuses if b.active_in(month_start, month_end))
        one_off = sum(
            r.amount for r in pay_records
            if r.record_type == "bonus" and _in_month(r.pay_date, month_start, month_end)
        )
        deductions = sum(
            r.amount for r in pay_records
            if r.record_type == "deduction" and _in_month(r.pay_date, month_start, month_end)
        )

        overtime_days = overtime_days_in(instances, requests, month_start, month_end)
        overtime_pay = len(overtime_days) * OVERTIME_MULTIPLIER * daily_rate

        is_rollover = month_start.month == settings.leave_year_start_month
        unused_days = excess_days = 0.0
        if is_rollover:
            year_start, year_end = previous_leave_year(month_start, settings.leave_year_start_month)
            if profile.tenure_start is None or profile.tenure_start <= year_end:
                accrued = accrued_allowance(profile, year_start, year_end, settings)
                taken = leave_days_taken(leave_records, year_start, year_end)
                balance = round(accrued - taken, 1)
                if balance > 0:
                    unused_days = balance
                elif balance < 0:
                    excess_days = -balance
        unused_payout = unused_days * daily_rate
        excess_deduction = excess_days * daily_rate

        total = (
            base + recurring + one_off + overtime_pay + holiday_bonus + unused_payout
            - deductions - excess_deduction
        )

        previews.append(
            MonthlyPayPreview(
                month=month_start,
                currency=profile.currency,
                monthly_base=round(base, 2),
                daily_rate=round(daily_rate, 2),
                holiday_shift_days=len(holiday_shifts),
                holiday_shifts=holiday_shifts,
                holiday_overtime_bonus=round(holiday_bonus, 2),
                recurring_bonuses=round(recurring, 2),
                one_off_bonuses=round(one_off, 2),
                deductions=round(deductions, 2),
                overtime_days=len(overtime_days),
                overtime_pay=round(overtime_pay, 2),
                is_rollover_month=is_rollover,
                unused_leave_days=unused_days,
                unused_leave_payout=round(unused_payout, 2),
                excess_leave_days=excess_days,
                excess_leave_deduction=round(excess_deduction, 2),
                status=payroll_status(month_start, month_end, pay_records, now, settings.payroll_cutoff_day),
                total=round(total, 2),
            )
        )
    return previews
