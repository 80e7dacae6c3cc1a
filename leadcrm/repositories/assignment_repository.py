from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, update

from leadcrm.core.config import settings
from leadcrm.models.assignment import (
    AutoAssignmentSettings,
    CheckedInAgent,
    LeadAssignmentHistory,
)
from leadcrm.repositories.base import BaseRepository


class CheckedInAgentRepository(BaseRepository):
    """Encapsulates every SQL query that touches ``checked_in_agents``."""

    async def get_for_day(self, agent_id: str, day: date) -> Optional[CheckedInAgent]:
        result = await self._db.execute(
            select(CheckedInAgent)
            .where(
                CheckedInAgent.agent_id == agent_id,
                CheckedInAgent.checked_in_date == day,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_active(self, day: date) -> List[CheckedInAgent]:
        """All active check-ins of *day* in rotation order (row id)."""
        result = await self._db.execute(
            select(CheckedInAgent)
            .where(
                CheckedInAgent.checked_in_date == day,
                CheckedInAgent.is_active.is_(True),
            )
            .order_by(CheckedInAgent.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_eligible(self, day: date) -> List[CheckedInAgent]:
        """Active check-ins of *day* that still have capacity, by row id."""
        result = await self._db.execute(
            select(CheckedInAgent)
            .where(
                CheckedInAgent.checked_in_date == day,
                CheckedInAgent.is_active.is_(True),
                CheckedInAgent.current_lead_count < CheckedInAgent.lead_capacity,
            )
            .order_by(CheckedInAgent.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def try_increment(self, checked_in_id: int, at: datetime) -> bool:
        """Count one more lead for the agent if still under capacity."""
        result = await self._db.execute(
            update(CheckedInAgent)
            .where(
                CheckedInAgent.id == checked_in_id,
                CheckedInAgent.is_active.is_(True),
                CheckedInAgent.current_lead_count < CheckedInAgent.lead_capacity,
            )
            .values(
                current_lead_count=CheckedInAgent.current_lead_count + 1,
                last_assigned_at=at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def add(self, checked_in: CheckedInAgent) -> CheckedInAgent:
        self._db.add(checked_in)
        await self._db.flush()
        return checked_in


class AssignmentRepository(BaseRepository):
    """Settings singleton and the append-only assignment history."""

    async def get_settings(self, for_update: bool = False) -> Optional[AutoAssignmentSettings]:
        query = (
            select(AutoAssignmentSettings)
            .order_by(AutoAssignmentSettings.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self._db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create_settings(self, for_update: bool = False) -> AutoAssignmentSettings:
        """Return the singleton row, creating it with defaults when absent."""
        row = await self.get_settings(for_update=for_update)
        if row is None:
            row = AutoAssignmentSettings(
                is_enabled=False,
                assignment_method="round_robin",
                current_round_robin_index=0,
                max_leads_per_agent_per_day=settings.DEFAULT_MAX_LEADS_PER_AGENT_PER_DAY,
            )
            self._db.add(row)
            await self._db.flush()
        return row

    async def add_history(
        self,
        lead_id: int,
        assigned_to: str,
        method: str,
        reason: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> LeadAssignmentHistory:
        entry = LeadAssignmentHistory(
            lead_id=lead_id,
            assigned_to=assigned_to,
            assigned_by=assigned_by,
            assignment_method=method,
            assignment_reason=reason,
        )
        self._db.add(entry)
        await self._db.flush()
        return entry

    async def list_history(self, lead_id: int) -> List[LeadAssignmentHistory]:
        result = await self._db.execute(
            select(LeadAssignmentHistory)
            .where(LeadAssignmentHistory.lead_id == lead_id)
            .order_by(LeadAssignmentHistory.id)
        )
        return list(result.scalars().all())
