"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.  They flush but never commit.
"""

from leadcrm.repositories.user_repository import UserRepository
from leadcrm.repositories.party_repository import LeadRepository, PartyRepository
from leadcrm.repositories.timeslot_repository import TimeslotRepository
from leadcrm.repositories.appointment_repository import AppointmentRepository
from leadcrm.repositories.assignment_repository import (
    AssignmentRepository,
    CheckedInAgentRepository,
)
from leadcrm.repositories.audit_repository import AuditLogRepository, NoteRepository
from leadcrm.repositories.calendar_repository import CalendarRepository
from leadcrm.repositories.playbook_repository import PlaybookRepository

__all__ = [
    "UserRepository",
    "PartyRepository",
    "LeadRepository",
    "TimeslotRepository",
    "AppointmentRepository",
    "AssignmentRepository",
    "CheckedInAgentRepository",
    "AuditLogRepository",
    "NoteRepository",
    "CalendarRepository",
    "PlaybookRepository",
]
