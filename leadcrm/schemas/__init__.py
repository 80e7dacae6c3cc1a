"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from leadcrm.schemas.common import (
    PartyKind as PartyKind,
    LeadStatus as LeadStatus,
    AppointmentStatus as AppointmentStatus,
    AssignmentMethod as AssignmentMethod,
    HistoryMethod as HistoryMethod,
    ContactSyncStatus as ContactSyncStatus,
    ActionResult as ActionResult,
)

# Appointment schemas
from leadcrm.schemas.appointment import (
    AppointmentCreate as AppointmentCreate,
    AppointmentUpdate as AppointmentUpdate,
    AppointmentStatusUpdate as AppointmentStatusUpdate,
    AppointmentOut as AppointmentOut,
    TimeslotOut as TimeslotOut,
    SweepItem as SweepItem,
    SweepResult as SweepResult,
    TimeslotGenerationResult as TimeslotGenerationResult,
)

# Assignment schemas
from leadcrm.schemas.assignment import (
    AssignmentResult as AssignmentResult,
    BulkAssignmentResult as BulkAssignmentResult,
    PreviewEntry as PreviewEntry,
    AssignmentPreview as AssignmentPreview,
    CheckInRequest as CheckInRequest,
    CheckOutRequest as CheckOutRequest,
    ManualAssignRequest as ManualAssignRequest,
    CheckedInAgentOut as CheckedInAgentOut,
    AutoAssignmentStatus as AutoAssignmentStatus,
)

# Status rule schemas
from leadcrm.schemas.status import (
    FollowUpRequest as FollowUpRequest,
    TerminalStatusRequest as TerminalStatusRequest,
    StatusChangeResult as StatusChangeResult,
)

# Playbook schemas
from leadcrm.schemas.playbook import (
    PlaybookAction as PlaybookAction,
    PlaybookCreate as PlaybookCreate,
    PlaybookActionRequest as PlaybookActionRequest,
    PlaybookOut as PlaybookOut,
    ContactSyncItem as ContactSyncItem,
    ContactSyncResult as ContactSyncResult,
)

# Cron schemas
from leadcrm.schemas.cron import (
    CronRequest as CronRequest,
    GenerateTimeslotsRequest as GenerateTimeslotsRequest,
    SweepRequest as SweepRequest,
    LeadMaintenanceRequest as LeadMaintenanceRequest,
)
