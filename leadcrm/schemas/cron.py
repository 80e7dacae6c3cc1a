from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from leadcrm.schemas.common import AppointmentStatus, PartyKind


class CronRequest(BaseModel):
    """Body of every ``/cron`` request."""

    api_key: str


class GenerateTimeslotsRequest(CronRequest):
    days_ahead: int = Field(30, ge=1, le=90)
    calendar_setting_id: Optional[int] = None


class SweepRequest(CronRequest):
    kind: PartyKind = PartyKind.lead
    default_disposition: AppointmentStatus = AppointmentStatus.missed
    attended_ids: List[int] = Field(default_factory=list)
    threshold_hours: Optional[float] = Field(None, gt=0)

    @field_validator("default_disposition")
    @classmethod
    def disposition_is_outcome(cls, value: AppointmentStatus) -> AppointmentStatus:
        if value not in (AppointmentStatus.done, AppointmentStatus.missed):
            raise ValueError("default_disposition must be 'done' or 'missed'")
        return value


class LeadMaintenanceRequest(CronRequest):
    kind: PartyKind = PartyKind.lead
    days: Optional[int] = Field(None, ge=1)
