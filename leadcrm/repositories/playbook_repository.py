from typing import List, Optional

from sqlalchemy import delete, select, update

from leadcrm.models.lead import Lead
from leadcrm.models.playbook import Playbook, PlaybookContact
from leadcrm.repositories.base import BaseRepository
from leadcrm.schemas.common import ContactSyncStatus, LeadStatus


class PlaybookRepository(BaseRepository):
    """Encapsulates every SQL query that touches the playbook mirror."""

    async def get_by_id(self, playbook_id: int) -> Optional[Playbook]:
        result = await self._db.execute(
            select(Playbook)
            .where(Playbook.id == playbook_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Playbook]:
        result = await self._db.execute(
            select(Playbook).where(Playbook.is_active.is_(True)).order_by(Playbook.id)
        )
        return list(result.scalars().all())

    async def add(self, playbook: Playbook) -> Playbook:
        self._db.add(playbook)
        await self._db.flush()
        return playbook

    async def update_fields(self, playbook_id: int, **values) -> None:
        await self._db.execute(
            update(Playbook)
            .where(Playbook.id == playbook_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, playbook_id: int) -> None:
        await self._db.execute(
            delete(PlaybookContact)
            .where(PlaybookContact.playbook_id == playbook_id)
            .execution_options(synchronize_session=False)
        )
        await self._db.execute(
            delete(Playbook)
            .where(Playbook.id == playbook_id)
            .execution_options(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def contact_lead_ids(self, playbook_id: int) -> List[int]:
        """Leads already mirrored, whatever their sync status."""
        result = await self._db.execute(
            select(PlaybookContact.lead_id).where(
                PlaybookContact.playbook_id == playbook_id
            )
        )
        return list(result.scalars().all())

    async def list_contacts(
        self, playbook_id: int, status: Optional[ContactSyncStatus] = None
    ) -> List[PlaybookContact]:
        query = select(PlaybookContact).where(PlaybookContact.playbook_id == playbook_id)
        if status is not None:
            query = query.where(PlaybookContact.status == status.value)
        result = await self._db.execute(
            query.order_by(PlaybookContact.id).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_stale_contacts(self, playbook_id: int, agent_id: str) -> List[PlaybookContact]:
        """Created contacts whose lead is no longer the agent's live lead."""
        result = await self._db.execute(
            select(PlaybookContact)
            .join(Lead, Lead.id == PlaybookContact.lead_id)
            .where(
                PlaybookContact.playbook_id == playbook_id,
                PlaybookContact.status == ContactSyncStatus.created.value,
                (Lead.status != LeadStatus.assigned.value)
                | (Lead.assigned_to.is_(None))
                | (Lead.assigned_to != agent_id)
                | (Lead.is_deleted.is_(True)),
            )
            .order_by(PlaybookContact.id)
        )
        return list(result.scalars().all())

    async def add_contact(self, contact: PlaybookContact) -> PlaybookContact:
        self._db.add(contact)
        await self._db.flush()
        return contact

    async def mark_contacts(self, contact_ids: List[int], status: ContactSyncStatus) -> None:
        if not contact_ids:
            return
        await self._db.execute(
            update(PlaybookContact)
            .where(PlaybookContact.id.in_(contact_ids))
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
