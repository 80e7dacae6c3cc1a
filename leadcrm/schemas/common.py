from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class PartyKind(str, Enum):
    """Which kind of person an appointment or status update targets."""

    lead = "lead"
    borrower = "borrower"


class LeadStatus(str, Enum):
    new = "new"
    assigned = "assigned"
    no_answer = "no_answer"
    follow_up = "follow_up"
    booked = "booked"
    done = "done"
    missed = "missed/RS"
    unqualified = "unqualified"
    give_up = "give_up"
    blacklisted = "blacklisted"


class AppointmentStatus(str, Enum):
    upcoming = "upcoming"
    # Legacy rows written before "upcoming" existed; treated as upcoming
    scheduled = "scheduled"
    done = "done"
    missed = "missed"
    cancelled = "cancelled"


class AssignmentMethod(str, Enum):
    round_robin = "round_robin"
    weighted = "weighted"


class HistoryMethod(str, Enum):
    auto_round_robin = "auto_round_robin"
    auto_weighted = "auto_weighted"
    manual_even_split = "manual_even_split"
    manual = "manual"


class ContactSyncStatus(str, Enum):
    pending = "pending"
    created = "created"
    failed = "failed"
    removed = "removed"


class ActionResult(BaseModel):
    """Uniform ``{success, message, error?, data?}`` envelope."""

    success: bool = True
    message: Optional[str] = None
    error: Optional[str] = None
    data: Optional[Any] = None
