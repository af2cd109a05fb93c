from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _naive(value: datetime) -> datetime:
    # Naive local-calendar semantics: any offset the store attaches is dropped
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


class ManualShiftInstance(BaseModel):
    """A concrete shift row from staff_schedules, independent of any pattern"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    subject_id: str = Field(alias="user_id")
    client_name: str
    start: datetime = Field(alias="start_datetime")
    end: datetime = Field(alias="end_datetime")
    notes: Optional[str] = None
    label: Optional[str] = Field(default=None, alias="shift_type")
    hourly_rate: Optional[float] = None
    currency: str = "GBP"

    @field_validator("start", "end")
    @classmethod
    def _strip_tz(cls, value: datetime) -> datetime:
        return _naive(value)


class _InstanceBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: str
    client_name: str
    start: datetime
    end: datetime
    source_id: str
    suppressed: bool = False
    is_overtime: bool = False
    label: Optional[str] = None
    notes: Optional[str] = None
    hourly_rate: Optional[float] = None
    currency: str = "GBP"

    @property
    def shift_date(self) -> date:
        return self.start.date()

    @property
    def slot_key(self):
        """De-duplication key: subject plus start truncated to the minute."""
        return (self.subject_id, self.start.replace(second=0, microsecond=0))


class ManualInstance(_InstanceBase):
    origin: Literal["manual"] = "manual"


class PatternInstance(_InstanceBase):
    origin: Literal["pattern"] = "pattern"


class CoverInstance(_InstanceBase):
    """Derived per resolution pass; never persisted."""
    origin: Literal["cover"] = "cover"
    covering_for: str
    covering_for_name: Optional[str] = None
    covered_origin: Literal["manual", "pattern"]
    covered_source_id: str


ResolvedInstance = Annotated[
    Union[ManualInstance, PatternInstance, CoverInstance],
    Field(discriminator="origin"),
]


class PackedInstance(BaseModel):
    """Response model pairing an instance with its timeline row"""
    row: int
    instance: ResolvedInstance


class TimelineGroup(BaseModel):
    """Response model for one subject-group on one day"""
    group_key: str
    date: date
    row_count: int
    instances: List[PackedInstance]


class TimelineResponse(BaseModel):
    """Response model for a packed timeline window"""
    start_date: date
    end_date: date
    group_by: Literal["staff", "client"]
    groups: List[TimelineGroup]
    suppressed_count: int = 0
    conflicts: List[Dict[str, Any]] = []
