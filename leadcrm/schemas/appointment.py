from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from leadcrm.schemas.common import AppointmentStatus


class AppointmentCreate(BaseModel):
    party_id: int = Field(..., description="Lead or borrower id")
    agent_id: str
    timeslot_ids: List[int] = Field(..., min_length=1)
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    loan_status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("timeslot_ids")
    @classmethod
    def unique_timeslots(cls, value: List[int]) -> List[int]:
        if len(set(value)) != len(value):
            raise ValueError("timeslot_ids must not contain duplicates")
        return value

    @model_validator(mode="after")
    def start_before_end(self):
        if (
            self.start_datetime is not None
            and self.end_datetime is not None
            and self.start_datetime >= self.end_datetime
        ):
            raise ValueError("start_datetime must be before end_datetime")
        return self


class AppointmentUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""

    agent_id: Optional[str] = None
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    loan_status: Optional[str] = None
    notes: Optional[str] = None
    timeslot_ids: Optional[List[int]] = Field(None, min_length=1)

    @field_validator("timeslot_ids")
    @classmethod
    def unique_timeslots(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and len(set(value)) != len(value):
            raise ValueError("timeslot_ids must not contain duplicates")
        return value


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    party_id: int
    agent_id: str
    status: AppointmentStatus
    start_datetime: datetime
    end_datetime: datetime
    loan_status: Optional[str] = None
    notes: Optional[str] = None
    timeslot_ids: List[int] = Field(default_factory=list)


class TimeslotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    start_time: time
    end_time: time
    max_capacity: int
    occupied_count: int
    calendar_setting_id: Optional[int] = None
    is_disabled: bool = False
    available: bool = True


class SweepItem(BaseModel):
    appointment_id: Optional[int] = None
    party_id: int
    success: bool
    new_status: Optional[str] = None
    error: Optional[str] = None


class SweepResult(BaseModel):
    success: bool = True
    message: str = ""
    processed: int = 0
    updated: int = 0
    failed: int = 0
    details: List[SweepItem] = Field(default_factory=list)


class TimeslotGenerationResult(BaseModel):
    success: bool = True
    message: str = ""
    created_count: int = 0
    slots: List[TimeslotOut] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
