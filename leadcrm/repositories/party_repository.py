from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select, update

from leadcrm.core.timezone import utc_now
from leadcrm.models.lead import Lead
from leadcrm.models.party import binding_for
from leadcrm.repositories.base import BaseRepository
from leadcrm.schemas.common import LeadStatus, PartyKind


class PartyRepository(BaseRepository):
    """Lookups and status writes shared by leads and borrowers."""

    def __init__(self, db, kind: PartyKind = PartyKind.lead) -> None:
        super().__init__(db)
        self._binding = binding_for(kind)
        self._model = self._binding.party_model

    async def get_by_id(self, party_id: int, include_deleted: bool = False):
        query = (
            select(self._model)
            .where(self._model.id == party_id)
            .execution_options(populate_existing=True)
        )
        if not include_deleted:
            query = query.where(self._model.is_deleted.is_(False))
        result = await self._db.execute(query)
        return result.scalar_one_or_none()

    async def update_fields(self, party_id: int, values: Dict[str, Any]) -> None:
        await self._db.execute(
            update(self._model)
            .where(self._model.id == party_id)
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def list_stale_with_status(
        self, status: LeadStatus, updated_before: datetime, limit: int = 500
    ) -> List[Any]:
        result = await self._db.execute(
            select(self._model)
            .where(
                self._model.status == status.value,
                self._model.is_deleted.is_(False),
                self._model.updated_at <= updated_before,
            )
            .order_by(self._model.updated_at, self._model.id)
            .limit(limit)
        )
        return list(result.scalars().all())


class LeadRepository(PartyRepository):
    """Lead-only queries used by assignment and playbook sync."""

    def __init__(self, db) -> None:
        super().__init__(db, PartyKind.lead)

    async def list_unassigned_new(self, limit: Optional[int] = None) -> List[Lead]:
        """``status=new`` leads with no agent, oldest first."""
        query = (
            select(Lead)
            .where(
                Lead.status == LeadStatus.new.value,
                Lead.assigned_to.is_(None),
                Lead.is_deleted.is_(False),
            )
            .order_by(Lead.created_at, Lead.id)
        )
        if limit:
            query = query.limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def count_unassigned_new(self) -> int:
        result = await self._db.execute(
            select(func.count(Lead.id)).where(
                Lead.status == LeadStatus.new.value,
                Lead.assigned_to.is_(None),
                Lead.is_deleted.is_(False),
            )
        )
        return result.scalar_one()

    async def assign_if_unassigned(
        self, lead_id: int, agent_id: str, actor: Optional[str] = None
    ) -> bool:
        """Point an unassigned lead at *agent_id*.

        Returns ``False`` when the lead was taken (or deleted) in the
        meantime, which callers treat as a lost race rather than an error.
        """
        result = await self._db.execute(
            update(Lead)
            .where(
                Lead.id == lead_id,
                Lead.assigned_to.is_(None),
                Lead.is_deleted.is_(False),
            )
            .values(
                assigned_to=agent_id,
                status=LeadStatus.assigned.value,
                updated_by=actor,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_assignee(self, lead_id: int, agent_id: str, actor: Optional[str] = None) -> None:
        await self.update_fields(
            lead_id,
            {
                "assigned_to": agent_id,
                "status": LeadStatus.assigned.value,
                "updated_by": actor,
            },
        )

    async def list_assigned_to(
        self,
        agent_id: str,
        exclude_ids: Sequence[int] = (),
        limit: int = 300,
    ) -> List[Lead]:
        """Agent's live ``assigned`` leads not in *exclude_ids*."""
        query = select(Lead).where(
            Lead.assigned_to == agent_id,
            Lead.status == LeadStatus.assigned.value,
            Lead.is_deleted.is_(False),
        )
        if exclude_ids:
            query = query.where(Lead.id.notin_(list(exclude_ids)))
        result = await self._db.execute(query.order_by(Lead.created_at, Lead.id).limit(limit))
        return list(result.scalars().all())
