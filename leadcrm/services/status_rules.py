import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional

from leadcrm.core.config import settings
from leadcrm.core.constants import (
    APPOINTMENT_OUTCOME_TO_PARTY_STATUS,
    APPOINTMENT_TRANSITIONS,
    NOTE_PREFIX,
    TERMINAL_PARTY_STATUSES,
    TERMINAL_REASONS,
)
from leadcrm.core.exceptions import (
    BorrowerNotFoundError,
    CustomReasonRequiredError,
    InvalidStatusTransitionError,
    LeadNotFoundError,
    ValidationError,
)
from leadcrm.core.timezone import as_utc, business_to_utc, business_today, utc_now
from leadcrm.repositories.appointment_repository import AppointmentRepository
from leadcrm.repositories.audit_repository import AuditLogRepository, NoteRepository
from leadcrm.repositories.party_repository import PartyRepository
from leadcrm.schemas.appointment import SweepItem, SweepResult
from leadcrm.schemas.common import AppointmentStatus, LeadStatus, PartyKind
from leadcrm.schemas.status import StatusChangeResult

logger = logging.getLogger(__name__)


def validate_appointment_transition(current: str, new: AppointmentStatus) -> None:
    """Raise unless *current* -> *new* is allowed.

    Re-applying the current status is accepted as a no-op transition.
    """
    new_value = AppointmentStatus(new).value
    if current == new_value:
        return
    allowed = APPOINTMENT_TRANSITIONS.get(current, frozenset())
    if new_value not in allowed:
        raise InvalidStatusTransitionError(
            f"Cannot transition appointment from {current} to {new_value}"
        )


def validate_party_transition(current: str, new: str) -> None:
    """Leads and borrowers may move freely except out of blacklisted."""
    if current in TERMINAL_PARTY_STATUSES and new != current:
        raise InvalidStatusTransitionError(
            f"Cannot change status of a {current} record"
        )


def terminal_reason_note(reason: str, custom_reason_text: Optional[str] = None) -> str:
    """Validate *reason* and build the matching ``STATUS UPDATE`` note.

    Reasons flagged ``custom_reason`` need non-blank free text.
    """
    entry = TERMINAL_REASONS.get(reason)
    if entry is None:
        raise ValidationError(f"Unknown status reason: {reason}")
    text = (custom_reason_text or "").strip()
    if entry.custom_reason:
        if not text:
            raise CustomReasonRequiredError(
                f"Please provide a custom reason for {entry.label}"
            )
        return f"{NOTE_PREFIX} {entry.label.upper()} ({text})"
    return f"{NOTE_PREFIX} {entry.label.upper()}"


class StatusRulesService:
    """Time- and reason-driven status changes for leads and borrowers.

    Nothing here runs on its own; each rule is invoked by an operator
    action or a cron request.
    """

    def __init__(
        self,
        kind: PartyKind,
        party_repo: PartyRepository,
        appointment_repo: AppointmentRepository,
        note_repo: NoteRepository,
        audit_repo: AuditLogRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._kind = PartyKind(kind)
        self._parties = party_repo
        self._appointments = appointment_repo
        self._notes = note_repo
        self._audit = audit_repo
        self._clock = clock

    async def _load_party(self, party_id: int):
        party = await self._parties.get_by_id(party_id)
        if party is None:
            if self._kind is PartyKind.lead:
                raise LeadNotFoundError(f"Lead {party_id} not found")
            raise BorrowerNotFoundError(f"Borrower {party_id} not found")
        return party

    async def _apply(
        self,
        party_id: int,
        current: str,
        values: dict,
        notes: Iterable[str],
        actor: Optional[str],
    ) -> None:
        try:
            await self._parties.update_fields(party_id, {**values, "updated_by": actor})
            for content in notes:
                await self._notes.add(self._kind, party_id, content, created_by=actor)
            await self._audit.log(
                self._kind.value,
                party_id,
                "status_update",
                f"status: {current} → {values['status']}",
                performed_by=actor,
            )
            await self._parties.commit()
        except Exception:
            await self._parties.rollback()
            raise

    # ------------------------------------------------------------------
    # Reason-based terminal statuses
    # ------------------------------------------------------------------

    async def apply_terminal_reason(
        self,
        party_id: int,
        reason: str,
        custom_reason_text: Optional[str] = None,
        additional_notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> StatusChangeResult:
        """Set ``give_up`` / ``blacklisted`` for a reason from the taxonomy.

        Validation happens before anything is written: an unknown reason
        or a missing custom text leaves the record and its notes untouched.
        """
        note = terminal_reason_note(reason, custom_reason_text)
        final_status = TERMINAL_REASONS[reason].final_status

        party = await self._load_party(party_id)
        current = party.status
        validate_party_transition(current, final_status)

        notes = [note]
        if additional_notes and additional_notes.strip():
            notes.append(additional_notes.strip())
        await self._apply(
            party_id,
            current,
            {"status": final_status, "follow_up_date": None},
            notes,
            actor,
        )
        logger.info("%s %s set to %s (%s)", self._kind.value, party_id, final_status, reason)
        return StatusChangeResult(
            success=True,
            message=f"Status updated to {final_status}",
            party_id=party_id,
            status=final_status,
            note=note,
        )

    # ------------------------------------------------------------------
    # Follow-up and no-answer
    # ------------------------------------------------------------------

    async def schedule_follow_up(
        self,
        party_id: int,
        follow_up_date: date,
        follow_up_time: Optional[time] = None,
        actor: Optional[str] = None,
    ) -> StatusChangeResult:
        """Set ``follow_up`` due at *follow_up_date* on the business clock.

        Without *follow_up_time* the configured default time of day
        (00:00) is used; the stored timestamp is UTC.
        """
        party = await self._load_party(party_id)
        current = party.status
        validate_party_transition(current, LeadStatus.follow_up.value)

        due = business_to_utc(follow_up_date, follow_up_time)
        note = f"{NOTE_PREFIX} Set to Follow-up for {follow_up_date.isoformat()}"
        if follow_up_time is not None:
            note += f" at {follow_up_time.strftime('%H:%M')}"

        await self._apply(
            party_id,
            current,
            {"status": LeadStatus.follow_up.value, "follow_up_date": due},
            [note],
            actor,
        )
        return StatusChangeResult(
            success=True,
            message="Follow-up scheduled",
            party_id=party_id,
            status=LeadStatus.follow_up.value,
            follow_up_date=due,
            note=note,
        )

    async def mark_no_answer(
        self, party_id: int, actor: Optional[str] = None
    ) -> StatusChangeResult:
        party = await self._load_party(party_id)
        current = party.status
        validate_party_transition(current, LeadStatus.no_answer.value)

        note = f"{NOTE_PREFIX} Marked as No Answer"
        await self._apply(
            party_id,
            current,
            {"status": LeadStatus.no_answer.value, "follow_up_date": None},
            [note],
            actor,
        )
        return StatusChangeResult(
            success=True,
            message="Marked as no answer",
            party_id=party_id,
            status=LeadStatus.no_answer.value,
            note=note,
        )

    async def recycle_no_answer(
        self, days: Optional[int] = None, actor: Optional[str] = None
    ) -> SweepResult:
        """Move records left in ``no_answer`` for *days* back to follow-up.

        The follow-up is due immediately (start of today on the business
        clock).  Each record is committed on its own.
        """
        days = days if days is not None else settings.NO_ANSWER_RECYCLE_DAYS
        now = self._clock()
        stale = await self._parties.list_stale_with_status(
            LeadStatus.no_answer, now - timedelta(days=days)
        )
        party_ids = [p.id for p in stale]
        result = SweepResult(processed=len(party_ids))
        due = business_to_utc(business_today(now))

        for party_id in party_ids:
            note = f"{NOTE_PREFIX} No answer for {days} days, moved to Follow-up"
            try:
                await self._apply(
                    party_id,
                    LeadStatus.no_answer.value,
                    {"status": LeadStatus.follow_up.value, "follow_up_date": due},
                    [note],
                    actor,
                )
                result.updated += 1
                result.details.append(
                    SweepItem(
                        party_id=party_id,
                        success=True,
                        new_status=LeadStatus.follow_up.value,
                    )
                )
            except Exception as exc:
                logger.warning(
                    "Failed to recycle no-answer %s %s", self._kind.value, party_id, exc_info=True
                )
                result.failed += 1
                result.details.append(
                    SweepItem(party_id=party_id, success=False, error=str(exc))
                )

        result.message = f"Recycled {result.updated} of {result.processed} no-answer records"
        return result

    # ------------------------------------------------------------------
    # Overdue appointment sweep
    # ------------------------------------------------------------------

    async def sweep_overdue_appointments(
        self,
        default_disposition: AppointmentStatus = AppointmentStatus.missed,
        attended_ids: Iterable[int] = (),
        threshold_hours: Optional[float] = None,
        actor: Optional[str] = None,
    ) -> SweepResult:
        """Settle upcoming appointments whose start is long past.

        Appointments that started more than *threshold_hours* ago become
        ``done`` when listed in *attended_ids* and *default_disposition*
        otherwise; the person's status follows (``done`` / ``missed/RS``)
        unless it is blacklisted.
        One failed item never stops the rest.
        """
        default_disposition = AppointmentStatus(default_disposition)
        if default_disposition not in (AppointmentStatus.done, AppointmentStatus.missed):
            raise ValidationError("Default disposition must be 'done' or 'missed'")
        if threshold_hours is None:
            threshold_hours = settings.APPOINTMENT_MISSED_THRESHOLD_HOURS
        attended = set(attended_ids)

        cutoff = as_utc(self._clock()) - timedelta(hours=threshold_hours)
        overdue = [
            (a.id, getattr(a, self._appointments.party_fk), a.status)
            for a in await self._appointments.list_overdue(cutoff)
        ]
        result = SweepResult(processed=len(overdue))

        for appointment_id, party_id, current in overdue:
            outcome = (
                AppointmentStatus.done if appointment_id in attended else default_disposition
            )
            try:
                appointment = await self._appointments.get_by_id(appointment_id)
                appointment.status = outcome.value
                appointment.updated_by = actor
                party = await self._parties.get_by_id(party_id, include_deleted=True)
                if party is not None and party.status not in TERMINAL_PARTY_STATUSES:
                    await self._parties.update_fields(
                        party_id,
                        {
                            "status": APPOINTMENT_OUTCOME_TO_PARTY_STATUS[outcome.value],
                            "updated_by": actor,
                        },
                    )
                await self._audit.log(
                    "appointment" if self._kind is PartyKind.lead else "borrower_appointment",
                    appointment_id,
                    "status_update",
                    f"status: {current} → {outcome.value} (overdue by more than "
                    f"{threshold_hours:g}h)",
                    performed_by=actor,
                )
                await self._appointments.commit()
            except Exception as exc:
                await self._appointments.rollback()
                logger.warning(
                    "Failed to settle appointment %s", appointment_id, exc_info=True
                )
                result.failed += 1
                result.details.append(
                    SweepItem(
                        appointment_id=appointment_id,
                        party_id=party_id,
                        success=False,
                        error=str(exc),
                    )
                )
                continue

            result.updated += 1
            result.details.append(
                SweepItem(
                    appointment_id=appointment_id,
                    party_id=party_id,
                    success=True,
                    new_status=outcome.value,
                )
            )

        result.success = result.failed == 0
        result.message = (
            f"Updated {result.updated} of {result.processed} overdue "
            f"{self._kind.value} appointments"
        )
        logger.info(result.message)
        return result
