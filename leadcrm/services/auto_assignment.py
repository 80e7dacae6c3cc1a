import logging
from datetime import datetime
from typing import Callable, List, Optional

from leadcrm.core.config import settings
from leadcrm.core.exceptions import AgentNotFoundError, LeadNotFoundError
from leadcrm.core.timezone import business_today, utc_now
from leadcrm.models.assignment import CheckedInAgent
from leadcrm.repositories.assignment_repository import (
    AssignmentRepository,
    CheckedInAgentRepository,
)
from leadcrm.repositories.audit_repository import AuditLogRepository
from leadcrm.repositories.party_repository import LeadRepository
from leadcrm.repositories.user_repository import UserRepository
from leadcrm.schemas.assignment import (
    AssignmentPreview,
    AssignmentResult,
    AutoAssignmentStatus,
    BulkAssignmentResult,
    PreviewEntry,
)
from leadcrm.schemas.common import HistoryMethod
from leadcrm.services.rotation import (
    InMemoryRotationCursor,
    RotationCursor,
    SettingsRotationCursor,
    even_split,
    strategy_for,
)

logger = logging.getLogger(__name__)


class AutoAssignmentService:
    """Distributes new, unassigned leads across today's checked-in agents.

    Single assignments pick the agent at the rotation cursor among the
    eligible agents (active check-in for the current business day with
    ``current_lead_count < lead_capacity``, ordered by check-in row id),
    then update the lead, the agent's counter, the cursor and the
    history in one transaction.  The settings row is locked for the
    duration so two concurrent calls cannot hand out the same index.

    Assignment methods return result objects instead of raising; only
    input lookups for manual operations raise domain errors.
    """

    def __init__(
        self,
        lead_repo: LeadRepository,
        checked_in_repo: CheckedInAgentRepository,
        assignment_repo: AssignmentRepository,
        user_repo: UserRepository,
        audit_repo: AuditLogRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._leads = lead_repo
        self._checked_in = checked_in_repo
        self._assignments = assignment_repo
        self._users = user_repo
        self._audit = audit_repo
        self._clock = clock

    # ------------------------------------------------------------------
    # Check-in
    # ------------------------------------------------------------------

    async def check_in(
        self,
        agent_id: str,
        lead_capacity: Optional[int] = None,
        weight: int = 1,
        actor: Optional[str] = None,
    ) -> CheckedInAgent:
        """Create or reactivate the agent's check-in for today.

        Capacity defaults to ``DEFAULT_LEAD_CAPACITY`` and is capped at the
        settings' ``max_leads_per_agent_per_day``.  Re-checking in keeps
        the day's ``current_lead_count``.
        """
        if await self._users.get_by_id(agent_id) is None:
            raise AgentNotFoundError(f"Agent {agent_id} not found")

        try:
            config = await self._assignments.get_or_create_settings()
            capacity = (
                lead_capacity
                if lead_capacity is not None
                else settings.DEFAULT_LEAD_CAPACITY
            )
            capacity = min(capacity, config.max_leads_per_agent_per_day)
            today = business_today(self._clock())

            row = await self._checked_in.get_for_day(agent_id, today)
            if row is None:
                row = await self._checked_in.add(
                    CheckedInAgent(
                        agent_id=agent_id,
                        checked_in_date=today,
                        lead_capacity=capacity,
                        weight=weight,
                        current_lead_count=0,
                        is_active=True,
                    )
                )
            else:
                row.lead_capacity = capacity
                row.weight = weight
                row.is_active = True

            await self._audit.log(
                "checked_in_agent",
                agent_id,
                "check_in",
                f"Checked in for {today.isoformat()} with capacity {capacity}",
                performed_by=actor or agent_id,
            )
            await self._checked_in.commit()
        except Exception:
            await self._checked_in.rollback()
            raise

        logger.info("Agent %s checked in (capacity=%d)", agent_id, capacity)
        return row

    async def check_out(self, agent_id: str, actor: Optional[str] = None) -> bool:
        """Deactivate today's check-in; ``False`` when there was none."""
        today = business_today(self._clock())
        try:
            row = await self._checked_in.get_for_day(agent_id, today)
            if row is None or not row.is_active:
                return False
            row.is_active = False
            await self._audit.log(
                "checked_in_agent",
                agent_id,
                "check_out",
                f"Checked out for {today.isoformat()}",
                performed_by=actor or agent_id,
            )
            await self._checked_in.commit()
        except Exception:
            await self._checked_in.rollback()
            raise
        logger.info("Agent %s checked out", agent_id)
        return True

    async def list_checked_in(self) -> List[CheckedInAgent]:
        return await self._checked_in.list_active(business_today(self._clock()))

    # ------------------------------------------------------------------
    # Round-robin assignment
    # ------------------------------------------------------------------

    async def assign_single(
        self,
        lead_id: int,
        actor: Optional[str] = None,
        cursor: Optional[RotationCursor] = None,
    ) -> AssignmentResult:
        """Assign one lead to the next eligible agent.

        *cursor* overrides the persisted rotation pointer; by default the
        pointer on the settings row is used and advanced.
        """
        now = self._clock()
        try:
            config = await self._assignments.get_or_create_settings(for_update=True)
            if not config.is_enabled:
                await self._assignments.commit()
                return AssignmentResult(
                    success=False,
                    message="Auto-assignment is not enabled",
                    lead_id=lead_id,
                    reason="not_enabled",
                )

            lead = await self._leads.get_by_id(lead_id)
            if lead is None:
                await self._assignments.rollback()
                return AssignmentResult(
                    success=False,
                    message=f"Lead {lead_id} not found",
                    lead_id=lead_id,
                    reason="lead_not_found",
                )
            if lead.assigned_to is not None:
                current_agent = lead.assigned_to
                await self._assignments.rollback()
                return AssignmentResult(
                    success=False,
                    message=f"Lead {lead_id} is already assigned",
                    lead_id=lead_id,
                    agent_id=current_agent,
                    reason="already_assigned",
                )

            eligible = await self._checked_in.list_eligible(business_today(now))
            if not eligible:
                await self._assignments.rollback()
                logger.warning("No available agents for lead %s", lead_id)
                return AssignmentResult(
                    success=False,
                    message="No available agents: none checked in or all at capacity",
                    lead_id=lead_id,
                    reason="no_available_agents",
                )

            strategy = strategy_for(config.assignment_method)
            rotation = strategy.rotation(eligible)
            cursor = cursor or SettingsRotationCursor(config)
            chosen = rotation[cursor.next(len(rotation))]
            chosen_id, chosen_agent_id = chosen.id, chosen.agent_id

            if not await self._leads.assign_if_unassigned(lead_id, chosen_agent_id, actor):
                await self._assignments.rollback()
                return AssignmentResult(
                    success=False,
                    message=f"Lead {lead_id} is already assigned",
                    lead_id=lead_id,
                    reason="already_assigned",
                )
            if not await self._checked_in.try_increment(chosen_id, now):
                await self._assignments.rollback()
                return AssignmentResult(
                    success=False,
                    message=f"Agent {chosen_agent_id} reached capacity",
                    lead_id=lead_id,
                    agent_id=chosen_agent_id,
                    reason="agent_at_capacity",
                )

            cursor.advance()
            config.last_assigned_agent_id = chosen_agent_id
            await self._assignments.add_history(
                lead_id=lead_id,
                assigned_to=chosen_agent_id,
                method=strategy.history_method,
                reason=f"Auto-assigned via {config.assignment_method}",
                assigned_by=actor,
            )
            await self._assignments.commit()
        except Exception as exc:
            await self._assignments.rollback()
            logger.error("Auto-assignment failed for lead %s", lead_id, exc_info=True)
            return AssignmentResult(
                success=False,
                message=f"Failed to assign lead {lead_id}: {exc}",
                lead_id=lead_id,
                reason="error",
            )

        agent = await self._users.get_by_id(chosen_agent_id)
        logger.info("Lead %s auto-assigned to agent %s", lead_id, chosen_agent_id)
        return AssignmentResult(
            success=True,
            message=f"Lead {lead_id} assigned",
            lead_id=lead_id,
            agent_id=chosen_agent_id,
            agent_name=agent.full_name if agent else None,
        )

    async def assign_bulk(self, actor: Optional[str] = None) -> BulkAssignmentResult:
        """Run :meth:`assign_single` over every new unassigned lead.

        Each lead is its own transaction.  Once an attempt reports that
        no agent is available the remaining leads are reported as skipped
        instead of being tried one by one.
        """
        # Plain ids: a failed attempt rolls back and expires loaded rows
        lead_ids = [lead.id for lead in await self._leads.list_unassigned_new()]
        result = BulkAssignmentResult(
            success=True, message="No new unassigned leads", total=len(lead_ids)
        )
        if not lead_ids:
            return result

        stop_reason: Optional[str] = None
        for lead_id in lead_ids:
            if stop_reason is not None:
                result.skipped_count += 1
                result.details.append(
                    AssignmentResult(
                        success=False,
                        message="Skipped",
                        lead_id=lead_id,
                        reason=stop_reason,
                    )
                )
                continue

            outcome = await self.assign_single(lead_id, actor=actor)
            result.details.append(outcome)
            if outcome.success:
                result.assigned_count += 1
            elif outcome.reason in ("no_available_agents", "not_enabled"):
                stop_reason = outcome.reason
                result.skipped_count += 1
            else:
                result.failed_count += 1

        result.success = result.assigned_count > 0 or result.failed_count == 0
        result.message = (
            f"Assigned {result.assigned_count} of {result.total} leads"
            f" ({result.failed_count} failed, {result.skipped_count} skipped)"
        )
        logger.info("Bulk auto-assignment: %s", result.message)
        return result

    # ------------------------------------------------------------------
    # Even split (manual balancing, independent of the rotation pointer)
    # ------------------------------------------------------------------

    async def assign_even_split(self, actor: Optional[str] = None) -> BulkAssignmentResult:
        """Split all new unassigned leads evenly over today's check-ins.

        Agent *i* receives a contiguous slice of ``floor(n/agents)`` leads
        plus one when ``i < n % agents``.  Capacity counters and the
        rotation pointer are not touched.
        """
        agents = await self._checked_in.list_active(business_today(self._clock()))
        if not agents:
            return BulkAssignmentResult(
                success=False, message="No agents are checked in today"
            )
        leads = await self._leads.list_unassigned_new()
        if not leads:
            return BulkAssignmentResult(
                success=False, message="No new unassigned leads available"
            )

        result = BulkAssignmentResult(success=True, message="", total=len(leads))
        names = {u.id: u.full_name for u in await self._users.get_many([a.agent_id for a in agents])}
        offset = 0
        try:
            for agent, count in zip(agents, even_split(len(leads), len(agents))):
                for lead in leads[offset : offset + count]:
                    if await self._leads.assign_if_unassigned(lead.id, agent.agent_id, actor):
                        await self._assignments.add_history(
                            lead_id=lead.id,
                            assigned_to=agent.agent_id,
                            method=HistoryMethod.manual_even_split.value,
                            reason="Even split across checked-in agents",
                            assigned_by=actor,
                        )
                        result.assigned_count += 1
                        result.details.append(
                            AssignmentResult(
                                success=True,
                                message=f"Lead {lead.id} assigned",
                                lead_id=lead.id,
                                agent_id=agent.agent_id,
                                agent_name=names.get(agent.agent_id),
                            )
                        )
                    else:
                        result.skipped_count += 1
                        result.details.append(
                            AssignmentResult(
                                success=False,
                                message=f"Lead {lead.id} is already assigned",
                                lead_id=lead.id,
                                reason="already_assigned",
                            )
                        )
                offset += count
            await self._assignments.commit()
        except Exception:
            await self._assignments.rollback()
            logger.error("Even-split assignment failed", exc_info=True)
            return BulkAssignmentResult(
                success=False,
                message="Failed to auto-assign leads",
                total=len(leads),
            )

        result.message = (
            f"Successfully assigned {result.assigned_count} leads to {len(agents)} agents"
        )
        return result

    # ------------------------------------------------------------------
    # Manual assignment
    # ------------------------------------------------------------------

    async def assign_manually(
        self,
        lead_id: int,
        agent_id: str,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> AssignmentResult:
        """Point a lead at a specific agent regardless of rotation."""
        lead = await self._leads.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFoundError(f"Lead {lead_id} not found")
        agent = await self._users.get_by_id(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent {agent_id} not found")

        try:
            await self._leads.set_assignee(lead_id, agent_id, actor)
            await self._assignments.add_history(
                lead_id=lead_id,
                assigned_to=agent_id,
                method=HistoryMethod.manual.value,
                reason=reason or "Manually assigned",
                assigned_by=actor,
            )
            await self._assignments.commit()
        except Exception:
            await self._assignments.rollback()
            raise

        return AssignmentResult(
            success=True,
            message=f"Lead {lead_id} assigned",
            lead_id=lead_id,
            agent_id=agent_id,
            agent_name=agent.full_name,
        )

    # ------------------------------------------------------------------
    # Previews (no writes)
    # ------------------------------------------------------------------

    async def preview_round_robin(self) -> AssignmentPreview:
        """Replay round-robin over the current backlog without writing.

        Uses a copy of the persisted pointer and each agent's remaining
        capacity, dropping agents from the rotation as they fill up just
        as consecutive real assignments would.
        """
        config = await self._assignments.get_settings()
        index = config.current_round_robin_index if config else 0
        method = config.assignment_method if config else None
        eligible = await self._checked_in.list_eligible(business_today(self._clock()))
        total = await self._leads.count_unassigned_new()

        names = {u.id: u.full_name for u in await self._users.get_many([a.agent_id for a in eligible])}
        counts = {a.id: 0 for a in eligible}
        remaining = {a.id: a.lead_capacity - a.current_lead_count for a in eligible}
        cursor = InMemoryRotationCursor(index)
        strategy = strategy_for(method)
        assignable = 0

        for _ in range(total):
            available = [a for a in eligible if remaining[a.id] > 0]
            if not available:
                break
            rotation = strategy.rotation(available)
            chosen = rotation[cursor.next(len(rotation))]
            cursor.advance()
            counts[chosen.id] += 1
            remaining[chosen.id] -= 1
            assignable += 1

        return AssignmentPreview(
            total_leads=total,
            assignable_leads=assignable,
            entries=[
                PreviewEntry(
                    agent_id=a.agent_id,
                    agent_name=names.get(a.agent_id),
                    lead_count=counts[a.id],
                )
                for a in eligible
            ],
            next_index=cursor.index,
        )

    async def preview_even_split(self) -> AssignmentPreview:
        agents = await self._checked_in.list_active(business_today(self._clock()))
        total = await self._leads.count_unassigned_new()
        names = {u.id: u.full_name for u in await self._users.get_many([a.agent_id for a in agents])}
        return AssignmentPreview(
            total_leads=total,
            assignable_leads=total if agents else 0,
            entries=[
                PreviewEntry(
                    agent_id=a.agent_id,
                    agent_name=names.get(a.agent_id),
                    lead_count=count,
                )
                for a, count in zip(agents, even_split(total, len(agents)))
            ],
        )

    # ------------------------------------------------------------------
    # Switches
    # ------------------------------------------------------------------

    async def enable(self, actor: Optional[str] = None) -> BulkAssignmentResult:
        """Turn auto-assignment on and drain the current backlog.

        Refuses (and leaves the switch off) when nobody is checked in.
        """
        agents = await self._checked_in.list_active(business_today(self._clock()))
        if not agents:
            return BulkAssignmentResult(
                success=False, message="No agents are checked in today"
            )
        try:
            config = await self._assignments.get_or_create_settings(for_update=True)
            config.is_enabled = True
            config.updated_by = actor
            await self._audit.log(
                "auto_assignment_settings",
                config.id,
                "enable",
                "Auto-assignment enabled",
                performed_by=actor,
            )
            await self._assignments.commit()
        except Exception:
            await self._assignments.rollback()
            raise
        logger.info("Auto-assignment enabled by %s", actor)
        return await self.assign_bulk(actor=actor)

    async def disable(self, actor: Optional[str] = None) -> AutoAssignmentStatus:
        try:
            config = await self._assignments.get_or_create_settings(for_update=True)
            config.is_enabled = False
            config.updated_by = actor
            await self._audit.log(
                "auto_assignment_settings",
                config.id,
                "disable",
                "Auto-assignment disabled",
                performed_by=actor,
            )
            await self._assignments.commit()
        except Exception:
            await self._assignments.rollback()
            raise
        logger.info("Auto-assignment disabled by %s", actor)
        return await self.status()

    async def status(self) -> AutoAssignmentStatus:
        config = await self._assignments.get_or_create_settings()
        await self._assignments.commit()
        today = business_today(self._clock())
        return AutoAssignmentStatus(
            is_enabled=config.is_enabled,
            assignment_method=config.assignment_method,
            current_round_robin_index=config.current_round_robin_index,
            last_assigned_agent_id=config.last_assigned_agent_id,
            max_leads_per_agent_per_day=config.max_leads_per_agent_per_day,
            checked_in_agents=len(await self._checked_in.list_active(today)),
            eligible_agents=len(await self._checked_in.list_eligible(today)),
            unassigned_leads=await self._leads.count_unassigned_new(),
        )
