import logging
import secrets
from typing import Optional

from fastapi import Depends, Header
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.core.config import settings
from leadcrm.core.database import get_db
from leadcrm.core.exceptions import UnauthorizedError
from leadcrm.schemas.common import PartyKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------


async def get_current_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Identity-provider id of the caller; every mutation is attributed to it."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("Missing X-User-Id header")
    return x_user_id.strip()


def verify_cron_key(api_key: Optional[str]) -> None:
    """Reject a cron request whose ``api_key`` does not match ``CRON_API_KEY``."""
    if not settings.CRON_API_KEY:
        logger.error("CRON_API_KEY is not configured; refusing cron request")
        raise UnauthorizedError("Cron API key is not configured")
    if not api_key or not secrets.compare_digest(api_key, settings.CRON_API_KEY):
        logger.warning("Rejected cron request with invalid api_key")
        raise UnauthorizedError("Invalid API key")


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Redis:
    """Get an async Redis client instance using connection pooling."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – caching disabled for this request")
        return None  # type: ignore[return-value]


async def get_timeslot_cache(
    redis_client: Redis = Depends(get_redis_client),
):
    """Build a :class:`TimeslotCache` backed by the shared Redis client."""
    from leadcrm.core.cache import TimeslotCache

    return TimeslotCache(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_lead_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.party_repository import LeadRepository

    return LeadRepository(db)


async def get_user_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.user_repository import UserRepository

    return UserRepository(db)


async def get_audit_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.audit_repository import AuditLogRepository

    return AuditLogRepository(db)


async def get_timeslot_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.timeslot_repository import TimeslotRepository

    return TimeslotRepository(db)


async def get_checked_in_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.assignment_repository import CheckedInAgentRepository

    return CheckedInAgentRepository(db)


async def get_assignment_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.assignment_repository import AssignmentRepository

    return AssignmentRepository(db)


async def get_calendar_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.calendar_repository import CalendarRepository

    return CalendarRepository(db)


async def get_playbook_repo(
    db: AsyncSession = Depends(get_db),
):
    from leadcrm.repositories.playbook_repository import PlaybookRepository

    return PlaybookRepository(db)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


def build_appointment_scheduler(kind: PartyKind, db: AsyncSession, cache=None):
    """Wire an :class:`AppointmentScheduler` for leads or borrowers on *db*."""
    from leadcrm.repositories.appointment_repository import AppointmentRepository
    from leadcrm.repositories.audit_repository import AuditLogRepository
    from leadcrm.repositories.party_repository import PartyRepository
    from leadcrm.repositories.timeslot_repository import TimeslotRepository
    from leadcrm.repositories.user_repository import UserRepository
    from leadcrm.services.appointment_scheduler import AppointmentScheduler

    return AppointmentScheduler(
        kind=kind,
        party_repo=PartyRepository(db, kind),
        appointment_repo=AppointmentRepository(db, kind),
        timeslot_repo=TimeslotRepository(db),
        user_repo=UserRepository(db),
        audit_repo=AuditLogRepository(db),
        cache=cache,
    )


def build_status_rules_service(kind: PartyKind, db: AsyncSession):
    """Wire a :class:`StatusRulesService` for leads or borrowers on *db*."""
    from leadcrm.repositories.appointment_repository import AppointmentRepository
    from leadcrm.repositories.audit_repository import AuditLogRepository, NoteRepository
    from leadcrm.repositories.party_repository import PartyRepository
    from leadcrm.services.status_rules import StatusRulesService

    return StatusRulesService(
        kind=kind,
        party_repo=PartyRepository(db, kind),
        appointment_repo=AppointmentRepository(db, kind),
        note_repo=NoteRepository(db),
        audit_repo=AuditLogRepository(db),
    )


async def get_appointment_scheduler(
    kind: PartyKind = PartyKind.lead,
    db: AsyncSession = Depends(get_db),
    cache=Depends(get_timeslot_cache),
):
    """Scheduler for the ``kind`` path (or query) parameter."""
    return build_appointment_scheduler(kind, db, cache)


async def get_lead_status_service(
    db: AsyncSession = Depends(get_db),
):
    return build_status_rules_service(PartyKind.lead, db)


async def get_borrower_status_service(
    db: AsyncSession = Depends(get_db),
):
    return build_status_rules_service(PartyKind.borrower, db)


async def get_auto_assignment_service(
    lead_repo=Depends(get_lead_repo),
    checked_in_repo=Depends(get_checked_in_repo),
    assignment_repo=Depends(get_assignment_repo),
    user_repo=Depends(get_user_repo),
    audit_repo=Depends(get_audit_repo),
):
    """Build an :class:`AutoAssignmentService` with injected repositories."""
    from leadcrm.services.auto_assignment import AutoAssignmentService

    return AutoAssignmentService(
        lead_repo=lead_repo,
        checked_in_repo=checked_in_repo,
        assignment_repo=assignment_repo,
        user_repo=user_repo,
        audit_repo=audit_repo,
    )


async def get_timeslot_generation_service(
    calendar_repo=Depends(get_calendar_repo),
    timeslot_repo=Depends(get_timeslot_repo),
    cache=Depends(get_timeslot_cache),
):
    from leadcrm.services.timeslot_generation import TimeslotGenerationService

    return TimeslotGenerationService(
        calendar_repo=calendar_repo,
        timeslot_repo=timeslot_repo,
        cache=cache,
    )


async def get_dialer_client():
    from leadcrm.services.dialer_client import DialerClient

    return DialerClient()


async def get_playbook_service(
    playbook_repo=Depends(get_playbook_repo),
    lead_repo=Depends(get_lead_repo),
    user_repo=Depends(get_user_repo),
    audit_repo=Depends(get_audit_repo),
    dialer=Depends(get_dialer_client),
):
    """Build a :class:`PlaybookService` with injected repositories and client."""
    from leadcrm.services.playbook_service import PlaybookService

    return PlaybookService(
        playbook_repo=playbook_repo,
        lead_repo=lead_repo,
        user_repo=user_repo,
        audit_repo=audit_repo,
        dialer=dialer,
    )
