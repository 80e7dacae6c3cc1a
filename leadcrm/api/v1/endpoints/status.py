"""Follow-up, no-answer and give-up / blacklist actions.

The same three routes are mounted under ``/leads`` and ``/borrowers``;
only the injected :class:`StatusRulesService` differs.
"""

from typing import Callable

from fastapi import APIRouter, Depends

from leadcrm.api.deps import (
    get_borrower_status_service,
    get_current_actor,
    get_lead_status_service,
)
from leadcrm.schemas.status import (
    FollowUpRequest,
    StatusChangeResult,
    TerminalStatusRequest,
)
from leadcrm.services.status_rules import StatusRulesService


def _build_router(prefix: str, tag: str, get_service: Callable) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.post("/{party_id}/follow-up", response_model=StatusChangeResult)
    async def schedule_follow_up(
        party_id: int,
        body: FollowUpRequest,
        service: StatusRulesService = Depends(get_service),
        actor: str = Depends(get_current_actor),
    ) -> StatusChangeResult:
        return await service.schedule_follow_up(
            party_id, body.follow_up_date, body.follow_up_time, actor=actor
        )

    @router.post("/{party_id}/no-answer", response_model=StatusChangeResult)
    async def mark_no_answer(
        party_id: int,
        service: StatusRulesService = Depends(get_service),
        actor: str = Depends(get_current_actor),
    ) -> StatusChangeResult:
        return await service.mark_no_answer(party_id, actor=actor)

    @router.post("/{party_id}/terminal-status", response_model=StatusChangeResult)
    async def apply_terminal_status(
        party_id: int,
        body: TerminalStatusRequest,
        service: StatusRulesService = Depends(get_service),
        actor: str = Depends(get_current_actor),
    ) -> StatusChangeResult:
        return await service.apply_terminal_reason(
            party_id,
            body.reason,
            custom_reason_text=body.custom_reason_text,
            additional_notes=body.additional_notes,
            actor=actor,
        )

    return router


leads_router = _build_router("/leads", "Leads", get_lead_status_service)
borrowers_router = _build_router("/borrowers", "Borrowers", get_borrower_status_service)
