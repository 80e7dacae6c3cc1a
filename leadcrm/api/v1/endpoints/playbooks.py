from fastapi import APIRouter, Depends, status

from leadcrm.api.deps import get_current_actor, get_playbook_service
from leadcrm.schemas.common import ActionResult
from leadcrm.schemas.playbook import (
    ContactSyncResult,
    PlaybookAction,
    PlaybookActionRequest,
    PlaybookCreate,
)
from leadcrm.services.playbook_service import PlaybookService

router = APIRouter(prefix="/playbooks", tags=["Playbooks"])


@router.post("", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def register_playbook(
    body: PlaybookCreate,
    service: PlaybookService = Depends(get_playbook_service),
    actor: str = Depends(get_current_actor),
) -> ActionResult:
    """Create a dialer playbook seeded with the agent's assigned leads."""
    return await service.register(body.name, body.agent_id, actor=actor)


@router.post("/{playbook_id}", response_model=ActionResult)
async def playbook_action(
    playbook_id: int,
    body: PlaybookActionRequest,
    service: PlaybookService = Depends(get_playbook_service),
    actor: str = Depends(get_current_actor),
) -> ActionResult:
    if body.action is PlaybookAction.start:
        return await service.start(playbook_id, actor=actor)
    return await service.stop(playbook_id, actor=actor)


@router.delete("/{playbook_id}", response_model=ActionResult)
async def delete_playbook(
    playbook_id: int,
    service: PlaybookService = Depends(get_playbook_service),
    actor: str = Depends(get_current_actor),
) -> ActionResult:
    return await service.delete(playbook_id, actor=actor)


@router.post("/{playbook_id}/sync", response_model=ContactSyncResult)
async def sync_playbook(
    playbook_id: int,
    service: PlaybookService = Depends(get_playbook_service),
    actor: str = Depends(get_current_actor),
) -> ContactSyncResult:
    """Push new assigned leads to the dialer."""
    return await service.sync_contacts(playbook_id)


@router.post("/{playbook_id}/cleanup", response_model=ContactSyncResult)
async def cleanup_playbook(
    playbook_id: int,
    service: PlaybookService = Depends(get_playbook_service),
    actor: str = Depends(get_current_actor),
) -> ContactSyncResult:
    """Drop dialer contacts whose lead is no longer assigned to the agent."""
    return await service.cleanup_contacts(playbook_id)
