from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlaybookAction(str, Enum):
    start = "start"
    stop = "stop"


class PlaybookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    agent_id: str


class PlaybookActionRequest(BaseModel):
    action: PlaybookAction


class PlaybookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    dialer_playbook_id: Optional[str] = None
    name: str
    agent_id: str
    is_active: bool
    last_synced_at: Optional[datetime] = None


class ContactSyncItem(BaseModel):
    lead_id: int
    success: bool
    contact_id: Optional[str] = None
    error: Optional[str] = None


class ContactSyncResult(BaseModel):
    success: bool = True
    message: str = ""
    playbook_id: Optional[int] = None
    total: int = 0
    created: int = 0
    failed: int = 0
    removed: int = 0
    details: List[ContactSyncItem] = Field(default_factory=list)
