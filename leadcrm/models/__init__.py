from leadcrm.models.base import Base
from leadcrm.models.user import User
from leadcrm.models.lead import Lead
from leadcrm.models.borrower import Borrower
from leadcrm.models.calendar import CalendarException, CalendarSetting
from leadcrm.models.timeslot import Timeslot
from leadcrm.models.appointment import (
    Appointment,
    AppointmentTimeslot,
    BorrowerAppointment,
    BorrowerAppointmentTimeslot,
)
from leadcrm.models.assignment import (
    AutoAssignmentSettings,
    CheckedInAgent,
    LeadAssignmentHistory,
)
from leadcrm.models.audit import AuditLog, Note
from leadcrm.models.playbook import Playbook, PlaybookContact

# Import event listeners to register them
from leadcrm.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "User",
    "Lead",
    "Borrower",
    "CalendarSetting",
    "CalendarException",
    "Timeslot",
    "Appointment",
    "AppointmentTimeslot",
    "BorrowerAppointment",
    "BorrowerAppointmentTimeslot",
    "CheckedInAgent",
    "AutoAssignmentSettings",
    "LeadAssignmentHistory",
    "AuditLog",
    "Note",
    "Playbook",
    "PlaybookContact",
]
