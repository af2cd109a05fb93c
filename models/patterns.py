from datetime import date, time, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from modules.rota.errors import MalformedPatternError

ALL_WEEKDAYS = [0, 1, 2, 3, 4, 5, 6]  # 0 = Sunday


def sunday_weekday(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def spanned_weekdays(start: date, end: date) -> List[int]:
    """Distinct Sunday-based weekdays covered by [start, end]."""
    days = set()
    current = start
    while current <= end and len(days) < 7:
        days.add(sunday_weekday(current))
        current += timedelta(days=1)
    return sorted(days)


def _as_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class RecurrenceInterval(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    ONE_OFF = "one_off"


class RecurrencePattern(BaseModel):
    """A recurring rotation rule (row of recurring_shift_patterns)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    subject_id: str = Field(alias="user_id")
    client_name: str
    days_of_week: List[int] = Field(default_factory=list)
    start_time: time
    end_time: time
    start_date: date
    end_date: Optional[date] = None  # None = indefinite
    recurrence_interval: RecurrenceInterval = RecurrenceInterval.WEEKLY
    is_overtime: bool = False
    label: Optional[str] = Field(default=None, alias="shift_type")
    notes: Optional[str] = None
    hourly_rate: Optional[float] = None
    currency: str = "GBP"

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _coerce_days(cls, value):
        return [] if value is None else value

    @field_validator("recurrence_interval", mode="before")
    @classmethod
    def _default_interval(cls, value):
        return value or RecurrenceInterval.WEEKLY

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: List[int]) -> List[int]:
        bad = [d for d in value if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"weekday values must be within 0..6, got {bad}")
        return sorted(set(value))

    @model_validator(mode="before")
    @classmethod
    def _derive_days(cls, data):
        if not isinstance(data, dict):
            return data
        interval = data.get("recurrence_interval")
        if interval == RecurrenceInterval.DAILY:
            return {**data, "days_of_week": list(ALL_WEEKDAYS)}
        if interval == RecurrenceInterval.ONE_OFF:
            try:
                start = _as_date(data.get("start_date"))
                end = _as_date(data.get("end_date"))
            except (TypeError, ValueError):
                return data
            if start and end and start <= end:
                return {**data, "days_of_week": spanned_weekdays(start, end)}
        return data

    @model_validator(mode="after")
    def _check_window(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.recurrence_interval == RecurrenceInterval.ONE_OFF and self.end_date is None:
            raise ValueError("one_off patterns need an end_date")
        return self

    @property
    def is_standard(self) -> bool:
        return not self.is_overtime


class PatternException(BaseModel):
    """One deleted occurrence of a pattern (row of shift_pattern_exceptions)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pattern_id: str
    exception_date: date
    id: Optional[str] = None
    exception_type: str = "deleted"


class PatternCreate(BaseModel):
    """Request model for creating a recurring pattern"""
    user_id: str
    client_name: str
    days_of_week: List[int] = []
    start_time: time
    end_time: time
    start_date: date
    end_date: Optional[date] = None
    recurrence_interval: RecurrenceInterval = RecurrenceInterval.WEEKLY
    is_overtime: bool = False
    shift_type: Optional[str] = None
    notes: Optional[str] = None
    hourly_rate: Optional[float] = None
    currency: str = "GBP"


class PatternEnd(BaseModel):
    """Request model for ending a pattern by narrowing its end date"""
    end_date: date


class ExceptionCreate(BaseModel):
    """Request model for deleting a single occurrence"""
    exception_date: date


def validate_pattern(row: dict) -> RecurrencePattern:
    """Parse a pattern row, raising MalformedPatternError instead of a pydantic error."""
    try:
        return RecurrencePattern.model_validate(row)
    except ValidationError as e:
        raise MalformedPatternError(
            "Recurrence pattern is malformed",
            details={
                "pattern_id": row.get("id"),
                "errors": [err["msg"] for err in e.errors()],
            },
        ) from e
