"""API-layer dependency functions.

Re-exports all dependency factories from ``leadcrm.dependencies`` so that
endpoint modules only need to import from ``leadcrm.api.deps``.
"""

from leadcrm.core.database import get_db
from leadcrm.dependencies import (
    # Caller identity
    get_current_actor,
    verify_cron_key,
    # Repository factories
    get_lead_repo,
    get_user_repo,
    get_audit_repo,
    get_timeslot_repo,
    get_checked_in_repo,
    get_assignment_repo,
    get_calendar_repo,
    get_playbook_repo,
    # Service factories
    build_appointment_scheduler,
    build_status_rules_service,
    get_appointment_scheduler,
    get_lead_status_service,
    get_borrower_status_service,
    get_auto_assignment_service,
    get_timeslot_generation_service,
    get_dialer_client,
    get_playbook_service,
    # Redis
    get_redis_client,
    get_timeslot_cache,
)

__all__ = [
    "get_db",
    "get_current_actor",
    "verify_cron_key",
    "get_lead_repo",
    "get_user_repo",
    "get_audit_repo",
    "get_timeslot_repo",
    "get_checked_in_repo",
    "get_assignment_repo",
    "get_calendar_repo",
    "get_playbook_repo",
    "build_appointment_scheduler",
    "build_status_rules_service",
    "get_appointment_scheduler",
    "get_lead_status_service",
    "get_borrower_status_service",
    "get_auto_assignment_service",
    "get_timeslot_generation_service",
    "get_dialer_client",
    "get_playbook_service",
    "get_redis_client",
    "get_timeslot_cache",
]
