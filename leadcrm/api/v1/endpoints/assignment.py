from typing import List

from fastapi import APIRouter, Depends, Query

from leadcrm.api.deps import get_auto_assignment_service, get_current_actor
from leadcrm.schemas.assignment import (
    AssignmentPreview,
    AssignmentResult,
    AutoAssignmentStatus,
    BulkAssignmentResult,
    CheckedInAgentOut,
    CheckInRequest,
    CheckOutRequest,
    ManualAssignRequest,
)
from leadcrm.schemas.common import ActionResult
from leadcrm.services.auto_assignment import AutoAssignmentService

router = APIRouter(prefix="/assignment", tags=["Assignment"])


@router.post("/check-in", response_model=CheckedInAgentOut)
async def check_in(
    body: CheckInRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
    actor: str = Depends(get_current_actor),
) -> CheckedInAgentOut:
    """Make an agent eligible for today's rotation."""
    row = await service.check_in(
        body.agent_id,
        lead_capacity=body.lead_capacity,
        weight=body.weight,
        actor=actor,
    )
    return CheckedInAgentOut.model_validate(row)


@router.post("/check-out", response_model=ActionResult)
async def check_out(
    body: CheckOutRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
    actor: str = Depends(get_current_actor),
) -> ActionResult:
    checked_out = await service.check_out(body.agent_id, actor=actor)
    return ActionResult(
        success=checked_out,
        message="Checked out" if checked_out else "Agent is not checked in today",
    )


@router.get("/checked-in", response_model=List[CheckedInAgentOut])
async def list_checked_in(
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> List[CheckedInAgentOut]:
    return [CheckedInAgentOut.model_validate(row) for row in await service.list_checked_in()]


@router.get("/status", response_model=AutoAssignmentStatus)
async def assignment_status(
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> AutoAssignmentStatus:
    return await service.status()


@router.post("/leads/{lead_id}", response_model=AssignmentResult)
async def assign_lead(
    lead_id: int,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
    actor: str = Depends(get_current_actor),
) -> AssignmentResult:
    """Round-robin one lead; failures come back as ``success: false``."""
    return await service.assign_single(lead_id, actor=actor)


@router.post("/leads/{lead_id}/manual", response_model=AssignmentResult)
async def assign_lead_manually(
    lead_id: int,
    body: ManualAssignRequest,
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
    actor: str = Depends(get_current_actor),
) -> AssignmentResult:
    return await service.assign_manually(
        lead_id, body.agent_id, actor=actor, reason=body.reason
    )


@router.post("/bulk", response_model=BulkAssignmentResult)
async def assign_bulk(
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
    actor: str = Depends(get_current_actor),
) -> BulkAssignmentResult:
    return await service.assign_bulk(actor=actor)


@router.post("/even-split", response_model=BulkAssignmentResult)
async def assign_even_split(
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
    actor: str = Depends(get_current_actor),
) -> BulkAssignmentResult:
    return await service.assign_even_split(actor=actor)


@router.get("/preview", response_model=AssignmentPreview)
async def preview_assignment(
    mode: str = Query("round_robin", pattern="^(round_robin|even_split)$"),
    service: AutoAssignmentService = Depends(get_auto_assignment_service),
) -> AssignmentPreview:
    """Simulate distributing the current backlog without writing anything."""
    if mode == "even_split":
        return await service.preview_even_split()
    return await service.preview_round_robin()
