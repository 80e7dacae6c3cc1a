from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from leadcrm.schemas.common import AssignmentMethod


class AssignmentResult(BaseModel):
    """Outcome of one assignment attempt; never raised, always returned."""

    success: bool
    message: str
    lead_id: Optional[int] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    # Machine-readable failure cause: not_enabled, no_available_agents,
    # lead_not_found, already_assigned, agent_at_capacity, error
    reason: Optional[str] = None


class BulkAssignmentResult(BaseModel):
    success: bool
    message: str
    total: int = 0
    assigned_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    details: List[AssignmentResult] = Field(default_factory=list)


class PreviewEntry(BaseModel):
    agent_id: str
    agent_name: Optional[str] = None
    lead_count: int = 0


class AssignmentPreview(BaseModel):
    total_leads: int
    assignable_leads: int
    entries: List[PreviewEntry] = Field(default_factory=list)
    next_index: Optional[int] = None


class CheckInRequest(BaseModel):
    agent_id: str
    lead_capacity: Optional[int] = Field(None, ge=0)
    weight: int = Field(1, ge=1)


class CheckOutRequest(BaseModel):
    agent_id: str


class ManualAssignRequest(BaseModel):
    agent_id: str
    reason: Optional[str] = None


class CheckedInAgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    agent_id: str
    checked_in_date: date
    lead_capacity: int
    weight: int
    current_lead_count: int
    is_active: bool
    last_assigned_at: Optional[datetime] = None


class AutoAssignmentStatus(BaseModel):
    is_enabled: bool
    assignment_method: AssignmentMethod
    current_round_robin_index: int
    last_assigned_agent_id: Optional[str] = None
    max_leads_per_agent_per_day: int
    checked_in_agents: int
    eligible_agents: int
    unassigned_leads: int
