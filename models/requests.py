from datetime import date, timedelta
from enum import Enum
from typing import Iterator, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestKind(str, Enum):
    OVERTIME = "overtime"
    LEAVE = "leave"
    SHIFT_COVER = "shift_cover"


# staff_request_type values as stored, mapped onto the three kinds the engine knows
REQUEST_TYPE_KINDS = {
    "overtime": RequestKind.OVERTIME,
    "overtime_standard": RequestKind.OVERTIME,
    "overtime_double_up": RequestKind.OVERTIME,
    "holiday": RequestKind.LEAVE,
    "holiday_paid": RequestKind.LEAVE,
    "holiday_unpaid": RequestKind.LEAVE,
    "shift_swap": RequestKind.SHIFT_COVER,
}


class _DateRange(BaseModel):
    start_date: date
    end_date: date

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def days(self) -> Iterator[date]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)


class LeaveRecord(_DateRange):
    """An absence (row of staff_holidays)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    subject_id: str = Field(alias="user_id")
    absence_type: str = "holiday"
    status: ApprovalStatus = ApprovalStatus.PENDING
    days_charged: float = Field(default=0.0, alias="days_taken")
    no_cover_required: bool = False
    notes: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


class ExceptionRequest(_DateRange):
    """A staff-initiated overtime, leave or shift-cover request (row of staff_requests)"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    subject_id: str = Field(alias="user_id")
    request_type: str
    linked_subject_id: Optional[str] = Field(default=None, alias="swap_with_user_id")
    linked_leave_id: Optional[str] = Field(default=None, alias="linked_holiday_id")
    days_requested: float = 0.0
    details: Optional[str] = None
    status: ApprovalStatus = ApprovalStatus.PENDING

    @field_validator("days_requested", mode="before")
    @classmethod
    def _coerce_days(cls, value):
        return 0.0 if value is None else value

    @property
    def kind(self) -> Optional[RequestKind]:
        return REQUEST_TYPE_KINDS.get(self.request_type)

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


class RequestReview(BaseModel):
    """Request model for reviewing a staff request"""
    status: Literal["approved", "rejected"]
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
