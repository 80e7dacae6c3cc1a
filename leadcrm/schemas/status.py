from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field


class FollowUpRequest(BaseModel):
    follow_up_date: date = Field(..., description="Business-clock (UTC+8) date")
    follow_up_time: Optional[time] = Field(
        None, description="Business-clock time; defaults to 00:00"
    )


class TerminalStatusRequest(BaseModel):
    reason: str = Field(..., description="Key from the give-up / blacklist taxonomy")
    custom_reason_text: Optional[str] = None
    additional_notes: Optional[str] = None


class StatusChangeResult(BaseModel):
    success: bool = True
    message: str
    party_id: int
    status: str
    follow_up_date: Optional[datetime] = None
    note: Optional[str] = None
