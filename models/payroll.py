from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# pay_frequency values as stored, normalized
PAY_FREQUENCY_ALIASES = {
    "weekly": "weekly",
    "bi-weekly": "bi-weekly",
    "biweekly": "bi-weekly",
    "monthly": "monthly",
    "annual": "annual",
    "annually": "annual",
}


class CompensationProfile(BaseModel):
    """Pay configuration for a staff member (row of hr_profiles)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    subject_id: str = Field(alias="user_id")
    base_salary: Optional[float] = None
    pay_frequency: Literal["weekly", "bi-weekly", "monthly", "annual"] = "monthly"
    annual_leave_allowance: Optional[float] = Field(default=None, alias="annual_holiday_allowance")
    tenure_start: Optional[date] = Field(default=None, alias="start_date")
    currency: str = Field(default="GBP", alias="base_currency")

    @field_validator("pay_frequency", mode="before")
    @classmethod
    def _normalize_frequency(cls, value):
        if value is None:
            return "monthly"
        normalized = PAY_FREQUENCY_ALIASES.get(str(value).strip().lower())
        if normalized is None:
            raise ValueError(f"unknown pay frequency {value!r}")
        return normalized


class RecurringBonus(BaseModel):
    """A bonus paid every month while active (row of recurring_bonuses)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    subject_id: str = Field(alias="user_id")
    amount: float
    start_date: date
    end_date: Optional[date] = None
    description: Optional[str] = None

    def active_in(self, month_start: date, month_end: date) -> bool:
        if self.start_date > month_end:
            return False
        return self.end_date is None or self.end_date >= month_start


class PayRecord(BaseModel):
    """A pay-ledger entry (row of staff_pay_records)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    subject_id: str = Field(alias="user_id")
    record_type: Literal["salary", "bonus", "deduction", "expense", "overtime"]
    amount: float
    pay_date: date
    description: Optional[str] = None


class PublicHoliday(BaseModel):
    date: date
    name: str = "Public Holiday"


class HolidayShift(BaseModel):
    date: date
    holiday_name: str


class MonthlyPayPreview(BaseModel):
    """Projected pay for one calendar month"""
    month: date
    currency: str
    monthly_base: float
    daily_rate: float
    holiday_shift_days: int = 0
    holiday_shifts: List[HolidayShift] = []
    holiday_overtime_bonus: float = 0.0
    recurring_bonuses: float = 0.0
    one_off_bonuses: float = 0.0
    deductions: float = 0.0
    overtime_days: int = 0
    overtime_pay: float = 0.0
    is_rollover_month: bool = False
    unused_leave_days: float = 0.0
    unused_leave_payout: float = 0.0
    excess_leave_days: float = 0.0
    excess_leave_deduction: float = 0.0
    status: Literal["pending", "ready", "paid"] = "pending"
    total: float = 0.0

    @property
    def bonuses(self) -> float:
        return round(self.recurring_bonuses + self.one_off_bonuses, 2)
