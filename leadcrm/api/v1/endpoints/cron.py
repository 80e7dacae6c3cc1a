"""Routes hit by the external scheduler.

Every request carries the shared ``api_key`` in its body; there is no
in-process timer, so each periodic job runs exactly when a caller asks.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import (
    build_status_rules_service,
    get_auto_assignment_service,
    get_db,
    get_playbook_service,
    get_timeslot_generation_service,
    verify_cron_key,
)
from leadcrm.core.rate_limit import limiter
from leadcrm.schemas.appointment import SweepResult, TimeslotGenerationResult
from leadcrm.schemas.assignment import AutoAssignmentStatus, BulkAssignmentResult
from leadcrm.schemas.common import ActionResult
from leadcrm.schemas.cron import (
    CronRequest,
    GenerateTimeslotsRequest,
    LeadMaintenanceRequest,
    SweepRequest,
)
from leadcrm.services.auto_assignment import AutoAssignmentService
from leadcrm.services.playbook_service import PlaybookService
from leadcrm.services.timeslot_generation import TimeslotGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])

# Recorded as the actor of every change a cron request makes
CRON_ACTOR = "cron"


@router.post("/auto-assignment/start", response_model=BulkAssignmentResult)
@limiter.limit("10/minute")
async def start_auto_assignment(
    request: Request,
    body: CronRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> BulkAssignmentResult:
    """Switch auto-assignment on and assign the waiting backlog."""
    verify_cron_key(body.api_key)
    return await service.enable(actor=CRON_ACTOR)


@router.post("/auto-assignment/stop", response_model=AutoAssignmentStatus)
@limiter.limit("10/minute")
async def stop_auto_assignment(
    request: Request,
    body: CronRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> AutoAssignmentStatus:
    verify_cron_key(body.api_key)
    return await service.disable(actor=CRON_ACTOR)


@router.post("/auto-assignment/status", response_model=AutoAssignmentStatus)
@limiter.limit("30/minute")
async def auto_assignment_status(
    request: Request,
    body: CronRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> AutoAssignmentStatus:
    verify_cron_key(body.api_key)
    return await service.status()


@router.post("/close-auto-assign", response_model=AutoAssignmentStatus)
@limiter.limit("10/minute")
async def close_auto_assign(
    request: Request,
    body: CronRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> AutoAssignmentStatus:
    """End-of-day switch-off."""
    verify_cron_key(body.api_key)
    return await service.disable(actor=CRON_ACTOR)


@router.post("/generate-timeslots", response_model=TimeslotGenerationResult)
@limiter.limit("10/minute")
async def generate_timeslots(
    request: Request,
    body: GenerateTimeslotsRequest,
    service: TimeslotGenerationService = Depends(get_timeslot_generation_service),
) -> TimeslotGenerationResult:
    verify_cron_key(body.api_key)
    return await service.generate(
        days_ahead=body.days_ahead,
        calendar_setting_id=body.calendar_setting_id,
    )


@router.post("/appointments/sweep", response_model=SweepResult)
@limiter.limit("10/minute")
async def sweep_appointments(
    request: Request,
    body: SweepRequest,
    db: AsyncSession = Depends(get_db),
) -> SweepResult:
    """Settle upcoming appointments that started too long ago."""
    verify_cron_key(body.api_key)
    service = build_status_rules_service(body.kind, db)
    return await service.sweep_overdue_appointments(
        default_disposition=body.default_disposition,
        attended_ids=body.attended_ids,
        threshold_hours=body.threshold_hours,
        actor=CRON_ACTOR,
    )


@router.post("/lead-maintenance", response_model=SweepResult)
@limiter.limit("10/minute")
async def lead_maintenance(
    request: Request,
    body: LeadMaintenanceRequest,
    db: AsyncSession = Depends(get_db),
) -> SweepResult:
    """Move long-unanswered records back to follow-up."""
    verify_cron_key(body.api_key)
    service = build_status_rules_service(body.kind, db)
    return await service.recycle_no_answer(days=body.days, actor=CRON_ACTOR)


@router.post("/playbooks/sync", response_model=ActionResult)
@limiter.limit("10/minute")
async def sync_playbooks(
    request: Request,
    body: CronRequest,
    service: PlaybookService = Depends(get_playbook_service),
) -> ActionResult:
    verify_cron_key(body.api_key)
    return await service.sync_all_active()
