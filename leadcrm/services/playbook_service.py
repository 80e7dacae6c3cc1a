import logging
from typing import Callable, Optional

from leadcrm.core.config import settings
from leadcrm.core.exceptions import (
    AgentNotFoundError,
    ExternalServiceError,
    PlaybookNotFoundError,
)
from leadcrm.core.timezone import utc_now
from leadcrm.models.playbook import Playbook, PlaybookContact
from leadcrm.repositories.audit_repository import AuditLogRepository
from leadcrm.repositories.party_repository import LeadRepository
from leadcrm.repositories.playbook_repository import PlaybookRepository
from leadcrm.repositories.user_repository import UserRepository
from leadcrm.schemas.common import ActionResult, ContactSyncStatus
from leadcrm.schemas.playbook import ContactSyncItem, ContactSyncResult, PlaybookOut
from leadcrm.services.dialer_client import DialerClient

logger = logging.getLogger(__name__)


def contact_name(full_name: Optional[str]) -> str:
    """Strip punctuation the dialer rejects; blank names become ``Lead``."""
    cleaned = "".join(
        ch if ch.isalnum() or ch == " " else " " for ch in (full_name or "")
    ).strip()
    return cleaned or "Lead"


class PlaybookService:
    """Keeps an agent's dialer playbook in step with their assigned leads.

    The dialer is the source of truth for what is actually dialled; the
    local ``playbooks`` / ``playbook_contacts`` tables only mirror what
    was pushed and how each push went.
    """

    def __init__(
        self,
        playbook_repo: PlaybookRepository,
        lead_repo: LeadRepository,
        user_repo: UserRepository,
        audit_repo: AuditLogRepository,
        dialer: DialerClient,
        clock: Callable = utc_now,
    ) -> None:
        self._playbooks = playbook_repo
        self._leads = lead_repo
        self._users = user_repo
        self._audit = audit_repo
        self._dialer = dialer
        self._clock = clock

    async def _load(self, playbook_id: int) -> Playbook:
        playbook = await self._playbooks.get_by_id(playbook_id)
        if playbook is None:
            raise PlaybookNotFoundError(f"Playbook {playbook_id} not found")
        return playbook

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def register(
        self, name: str, agent_id: str, actor: Optional[str] = None
    ) -> ActionResult:
        """Create a dialer playbook seeded with the agent's assigned leads."""
        if await self._users.get_by_id(agent_id) is None:
            raise AgentNotFoundError(f"Agent {agent_id} not found")

        leads = await self._leads.list_assigned_to(
            agent_id, limit=settings.PLAYBOOK_SYNC_LIMIT
        )
        if not leads:
            return ActionResult(
                success=False, message="No assigned leads found for this agent"
            )
        seed = [(lead.id, lead.phone_number, lead.full_name, lead.source) for lead in leads]

        remote = await self._dialer.create_playbook(name, [phone for _, phone, _, _ in seed])

        try:
            playbook = await self._playbooks.add(
                Playbook(
                    dialer_playbook_id=remote["_id"],
                    name=name,
                    agent_id=agent_id,
                    is_active=True,
                    created_by=actor,
                )
            )
            for lead_id, phone, full_name, source in seed:
                first, _, last = (full_name or "Unknown").partition(" ")
                await self._playbooks.add_contact(
                    PlaybookContact(
                        playbook_id=playbook.id,
                        lead_id=lead_id,
                        phone_number=phone,
                        first_name=first or "Unknown",
                        last_name=last,
                        data_source=source or "Unknown",
                        status=ContactSyncStatus.created.value,
                    )
                )
            await self._audit.log(
                "playbook",
                playbook.id,
                "create",
                f"Registered playbook {name} for agent {agent_id} with {len(seed)} contacts",
                performed_by=actor,
            )
            out = PlaybookOut.model_validate(playbook)
            await self._playbooks.commit()
        except Exception:
            await self._playbooks.rollback()
            logger.error(
                "Dialer playbook %s created but local registration failed",
                remote["_id"],
                exc_info=True,
            )
            raise

        logger.info("Registered playbook %s (%s) for agent %s", out.id, out.dialer_playbook_id, agent_id)
        return ActionResult(
            success=True,
            message=f"Playbook created successfully with {len(seed)} contacts",
            data={"playbook": out.model_dump(mode="json"), "contact_count": len(seed)},
        )

    async def start(self, playbook_id: int, actor: Optional[str] = None) -> ActionResult:
        playbook = await self._load(playbook_id)
        await self._dialer.start_playbook(playbook.dialer_playbook_id)
        await self._playbooks.update_fields(playbook_id, is_active=True, updated_at=self._clock())
        await self._audit.log("playbook", playbook_id, "start", "Playbook started", performed_by=actor)
        await self._playbooks.commit()
        return ActionResult(success=True, message="Playbook started successfully")

    async def stop(self, playbook_id: int, actor: Optional[str] = None) -> ActionResult:
        playbook = await self._load(playbook_id)
        await self._dialer.stop_playbook(playbook.dialer_playbook_id)
        await self._audit.log("playbook", playbook_id, "stop", "Playbook stopped", performed_by=actor)
        await self._playbooks.commit()
        return ActionResult(success=True, message="Playbook stopped successfully")

    async def delete(self, playbook_id: int, actor: Optional[str] = None) -> ActionResult:
        """Stop and empty the remote playbook if possible, then drop the mirror."""
        playbook = await self._load(playbook_id)
        dialer_id = playbook.dialer_playbook_id
        phones = [
            c.phone_number
            for c in await self._playbooks.list_contacts(playbook_id, ContactSyncStatus.created)
        ]

        try:
            await self._dialer.stop_playbook(dialer_id)
        except ExternalServiceError as exc:
            logger.warning("Playbook %s might already be stopped: %s", dialer_id, exc.detail)
        try:
            await self._dialer.delete_contacts(phones)
        except ExternalServiceError as exc:
            logger.warning(
                "Could not remove %d dialer contacts of playbook %s: %s",
                len(phones),
                dialer_id,
                exc.detail,
            )

        try:
            await self._playbooks.delete(playbook_id)
            await self._audit.log(
                "playbook", playbook_id, "delete", "Playbook deleted", performed_by=actor
            )
            await self._playbooks.commit()
        except Exception:
            await self._playbooks.rollback()
            raise
        return ActionResult(
            success=True,
            message="Playbook deleted successfully",
            data={"playbook_id": playbook_id},
        )

    # ------------------------------------------------------------------
    # Contact sync
    # ------------------------------------------------------------------

    async def sync_contacts(self, playbook_id: int) -> ContactSyncResult:
        """Push the agent's newly assigned leads into the playbook.

        Leads already mirrored (including earlier failures) are skipped.
        Each contact is committed on its own so the mirror never loses a
        contact the dialer has already accepted.
        """
        playbook = await self._load(playbook_id)
        dialer_id, name, agent_id = playbook.dialer_playbook_id, playbook.name, playbook.agent_id

        existing = await self._playbooks.contact_lead_ids(playbook_id)
        leads = [
            (lead.id, lead.phone_number, lead.full_name, lead.source)
            for lead in await self._leads.list_assigned_to(
                agent_id, exclude_ids=existing, limit=settings.PLAYBOOK_SYNC_LIMIT
            )
        ]
        result = ContactSyncResult(playbook_id=playbook_id, total=len(leads))
        if not leads:
            result.message = "No new leads to sync"
            return result

        for lead_id, phone, full_name, source in leads:
            first_name = contact_name(full_name)
            contact = PlaybookContact(
                playbook_id=playbook_id,
                lead_id=lead_id,
                phone_number=phone,
                first_name=first_name,
                last_name=settings.DIALER_COMPANY_TAG,
                data_source=source or "Unknown",
            )
            try:
                remote = await self._dialer.create_contact(
                    first_name, settings.DIALER_COMPANY_TAG, phone, source or "Unknown"
                )
            except ExternalServiceError as exc:
                logger.warning("Failed to create dialer contact for lead %s: %s", lead_id, exc.detail)
                contact.status = ContactSyncStatus.failed.value
                contact.error_message = exc.detail
                result.failed += 1
                result.details.append(ContactSyncItem(lead_id=lead_id, success=False, error=exc.detail))
            else:
                contact.status = ContactSyncStatus.created.value
                contact.dialer_contact_id = remote["_id"]
                contact.api_response = remote
                result.created += 1
                result.details.append(
                    ContactSyncItem(lead_id=lead_id, success=True, contact_id=remote["_id"])
                )
            await self._playbooks.add_contact(contact)
            await self._playbooks.commit()

        if result.created:
            phones = [
                c.phone_number
                for c in await self._playbooks.list_contacts(playbook_id, ContactSyncStatus.created)
            ]
            try:
                await self._dialer.update_playbook(dialer_id, name, phones)
            except ExternalServiceError as exc:
                logger.error("Failed to update playbook %s: %s", dialer_id, exc.detail)
                result.success = False
            else:
                await self._playbooks.update_fields(playbook_id, last_synced_at=self._clock())
                await self._playbooks.commit()

        result.message = (
            f"Sync completed: {result.created} created, {result.failed} failed, playbook "
            f"{'updated' if result.success and result.created else 'not updated'}"
        )
        logger.info("Playbook %s: %s", playbook_id, result.message)
        return result

    async def cleanup_contacts(self, playbook_id: int) -> ContactSyncResult:
        """Remove contacts whose lead is no longer the agent's assigned lead."""
        playbook = await self._load(playbook_id)
        stale = [
            (c.id, c.lead_id, c.phone_number)
            for c in await self._playbooks.list_stale_contacts(playbook_id, playbook.agent_id)
        ]
        result = ContactSyncResult(playbook_id=playbook_id, total=len(stale))
        if not stale:
            result.message = "No contacts need cleanup"
            return result

        try:
            await self._dialer.delete_contacts([phone for _, _, phone in stale])
        except ExternalServiceError as exc:
            logger.error("Failed to delete dialer contacts for playbook %s: %s", playbook_id, exc.detail)
            result.success = False
            result.failed = len(stale)
            result.details = [
                ContactSyncItem(lead_id=lead_id, success=False, error=exc.detail)
                for _, lead_id, _ in stale
            ]
            result.message = f"Cleanup failed for {result.failed} contacts"
            return result

        await self._playbooks.mark_contacts([cid for cid, _, _ in stale], ContactSyncStatus.removed)
        await self._playbooks.commit()
        result.removed = len(stale)
        result.details = [ContactSyncItem(lead_id=lead_id, success=True) for _, lead_id, _ in stale]
        result.message = f"Cleanup completed: {result.removed} contacts removed"
        return result

    async def sync_all_active(self) -> ActionResult:
        """Cron entry point: start, clean and sync every active playbook."""
        playbook_ids = [p.id for p in await self._playbooks.list_active()]
        if not playbook_ids:
            return ActionResult(
                success=True,
                message="No active playbooks to sync",
                data={"synced": 0, "started": 0, "details": []},
            )

        started = synced = 0
        details = []
        for playbook_id in playbook_ids:
            entry = {"playbook_id": playbook_id, "started": False, "synced": False}
            try:
                await self.start(playbook_id)
                entry["started"] = True
                started += 1
                entry["cleanup"] = (await self.cleanup_contacts(playbook_id)).model_dump()
                sync = await self.sync_contacts(playbook_id)
                entry["synced"] = sync.success
                entry["sync"] = sync.model_dump()
                if sync.success:
                    synced += 1
            except Exception as exc:
                await self._playbooks.rollback()
                logger.warning("Cron sync failed for playbook %s", playbook_id, exc_info=True)
                entry["error"] = str(exc)
            details.append(entry)

        return ActionResult(
            success=True,
            message=f"Synced {synced} of {len(playbook_ids)} active playbooks",
            data={"synced": synced, "started": started, "details": details},
        )
