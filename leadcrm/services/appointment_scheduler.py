import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from leadcrm.core.cache import TimeslotCache
from leadcrm.core.constants import (
    ACTIVE_APPOINTMENT_STATUSES,
    APPOINTMENT_OUTCOME_TO_PARTY_STATUS,
    TERMINAL_PARTY_STATUSES,
)
from leadcrm.core.exceptions import (
    ActiveAppointmentExistsError,
    AgentNotFoundError,
    AppointmentNotActiveError,
    AppointmentNotFoundError,
    BorrowerNotFoundError,
    LeadNotFoundError,
    TimeslotFullError,
    TimeslotNotFoundError,
    ValidationError,
)
from leadcrm.core.timezone import business_to_utc
from leadcrm.models.timeslot import Timeslot
from leadcrm.repositories.appointment_repository import AppointmentRepository
from leadcrm.repositories.audit_repository import AuditLogRepository
from leadcrm.repositories.party_repository import PartyRepository
from leadcrm.repositories.timeslot_repository import TimeslotRepository, is_available
from leadcrm.repositories.user_repository import UserRepository
from leadcrm.schemas.appointment import AppointmentOut, TimeslotOut
from leadcrm.schemas.common import AppointmentStatus, LeadStatus, PartyKind
from leadcrm.services.status_rules import (
    validate_appointment_transition,
    validate_party_transition,
)

logger = logging.getLogger(__name__)

# Fields a partial update may touch, in change-log order
_UPDATABLE_FIELDS = ("agent_id", "start_datetime", "end_datetime", "loan_status", "notes")


def slot_window(slots: Sequence[Timeslot]) -> Tuple[datetime, datetime]:
    """UTC start/end covering *slots*; the first slot is the primary one."""
    primary = slots[0]
    start = business_to_utc(primary.date, primary.start_time)
    end = max(business_to_utc(s.date, s.end_time) for s in slots)
    return start, end


def _checked_slot_ids(timeslot_ids: Sequence[int]) -> List[int]:
    timeslot_ids = list(timeslot_ids)
    if not timeslot_ids:
        raise ValidationError("At least one timeslot is required")
    if len(set(timeslot_ids)) != len(timeslot_ids):
        raise ValidationError("Timeslots must not be listed twice")
    return timeslot_ids


def _fmt(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return "none" if value is None else str(value)


class AppointmentScheduler:
    """Books, edits and cancels appointments for one party kind.

    Every compound operation (appointment row, junction rows, slot
    counters, audit entry) runs in a single transaction and is rolled
    back as a whole on failure.  Slot rows are locked before the
    capacity check and reserved with a conditional increment, so the
    check and the reservation cannot be separated by a concurrent
    booking.
    """

    def __init__(
        self,
        kind: PartyKind,
        party_repo: PartyRepository,
        appointment_repo: AppointmentRepository,
        timeslot_repo: TimeslotRepository,
        user_repo: UserRepository,
        audit_repo: AuditLogRepository,
        cache: Optional[TimeslotCache] = None,
    ) -> None:
        self._kind = PartyKind(kind)
        self._parties = party_repo
        self._appointments = appointment_repo
        self._timeslots = timeslot_repo
        self._users = user_repo
        self._audit = audit_repo
        self._cache: TimeslotCache = cache or TimeslotCache()

    @property
    def _entity_type(self) -> str:
        return "appointment" if self._kind is PartyKind.lead else "borrower_appointment"

    def _party_not_found(self, party_id: int):
        if self._kind is PartyKind.lead:
            return LeadNotFoundError(f"Lead {party_id} not found")
        return BorrowerNotFoundError(f"Borrower {party_id} not found")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def check_existing(self, party_id: int):
        """Return the person's active appointment, or ``None``."""
        return await self._appointments.find_active_for_party(party_id)

    async def get(self, appointment_id: int):
        appointment = await self._appointments.get_by_id(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    async def to_out(self, appointment) -> AppointmentOut:
        return AppointmentOut(
            id=appointment.id,
            party_id=getattr(appointment, self._appointments.party_fk),
            agent_id=appointment.agent_id,
            status=appointment.status,
            start_datetime=appointment.start_datetime,
            end_datetime=appointment.end_datetime,
            loan_status=appointment.loan_status,
            notes=appointment.notes,
            timeslot_ids=await self._appointments.get_timeslot_ids(appointment.id),
        )

    async def available_timeslots(self, day: date) -> List[TimeslotOut]:
        """Enabled slots of *day* in start order, flagged with availability.

        Served from Redis when cached; every reserve/release through
        this service drops the cached entry for the affected dates.
        """
        cached = await self._cache.get_day(day)
        if cached is not None:
            return [TimeslotOut(**item) for item in cached]

        slots = [
            TimeslotOut.model_validate(slot).model_copy(update={"available": is_available(slot)})
            for slot in await self._timeslots.list_for_date(day)
        ]
        await self._cache.put_day(day, [slot.model_dump(mode="json") for slot in slots])
        return slots

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _lock_slots(self, timeslot_ids: Sequence[int]) -> List[Timeslot]:
        """Lock *timeslot_ids* and make sure each can take a booking.

        Returned in the order given, so index 0 is the primary slot.
        """
        slots = {s.id: s for s in await self._timeslots.get_many(timeslot_ids, for_update=True)}
        missing = [tid for tid in timeslot_ids if tid not in slots]
        if missing:
            raise TimeslotNotFoundError(f"Timeslot {missing[0]} not found")
        for tid in timeslot_ids:
            slot = slots[tid]
            if slot.is_disabled:
                raise TimeslotFullError(f"Timeslot {tid} is disabled")
            if not is_available(slot):
                raise TimeslotFullError(
                    f"Timeslot {tid} is fully booked "
                    f"({slot.occupied_count}/{slot.max_capacity})"
                )
        return [slots[tid] for tid in timeslot_ids]

    async def _reserve(self, timeslot_ids: Sequence[int]) -> None:
        for tid in timeslot_ids:
            if not await self._timeslots.try_reserve(tid):
                raise TimeslotFullError(f"Timeslot {tid} is fully booked")

    async def _release(self, timeslot_ids: Sequence[int]) -> None:
        for tid in timeslot_ids:
            await self._timeslots.release(tid)

    async def _invalidate(self, timeslot_ids: Sequence[int]) -> None:
        if not timeslot_ids:
            return
        slots = await self._timeslots.get_many(timeslot_ids)
        await self._cache.drop_days(s.date for s in slots)

    async def create(
        self,
        party_id: int,
        agent_id: str,
        timeslot_ids: Sequence[int],
        start_datetime: Optional[datetime] = None,
        end_datetime: Optional[datetime] = None,
        loan_status: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ):
        """Book an appointment and reserve its slots.

        Raises :class:`NotFoundError` subclasses for a missing person,
        agent or slot, :class:`ActiveAppointmentExistsError` when the
        person already has an upcoming appointment and
        :class:`TimeslotFullError` when a slot has no room.  Nothing is
        written in any of those cases.
        """
        timeslot_ids = _checked_slot_ids(timeslot_ids)

        party = await self._parties.get_by_id(party_id)
        if party is None:
            raise self._party_not_found(party_id)
        validate_party_transition(party.status, LeadStatus.booked.value)
        if await self._users.get_by_id(agent_id) is None:
            raise AgentNotFoundError(f"Agent {agent_id} not found")

        try:
            if await self._appointments.find_active_for_party(party_id) is not None:
                raise ActiveAppointmentExistsError(
                    f"{self._kind.value.capitalize()} already has an upcoming appointment"
                )
            slots = await self._lock_slots(timeslot_ids)
            if start_datetime is None or end_datetime is None:
                derived_start, derived_end = slot_window(slots)
                start_datetime = start_datetime or derived_start
                end_datetime = end_datetime or derived_end

            appointment = await self._appointments.add(
                {
                    self._appointments.party_fk: party_id,
                    "agent_id": agent_id,
                    "status": AppointmentStatus.upcoming.value,
                    "start_datetime": start_datetime,
                    "end_datetime": end_datetime,
                    "loan_status": loan_status,
                    "notes": notes,
                    "created_by": actor,
                    "updated_by": actor,
                }
            )
            await self._appointments.add_links(appointment.id, timeslot_ids)
            await self._reserve(timeslot_ids)
            await self._parties.update_fields(
                party_id, {"status": LeadStatus.booked.value, "updated_by": actor}
            )
            await self._audit.log(
                self._entity_type,
                appointment.id,
                "create",
                f"Created appointment for {self._kind.value} {party_id} "
                f"with agent {agent_id} at {start_datetime.isoformat()} "
                f"(timeslots {', '.join(str(t) for t in timeslot_ids)})",
                performed_by=actor,
            )
            await self._appointments.commit()
        except Exception:
            await self._appointments.rollback()
            raise

        await self._invalidate(timeslot_ids)
        logger.info(
            "Created %s appointment %s for %s %s",
            self._kind.value,
            appointment.id,
            self._kind.value,
            party_id,
        )
        return appointment

    async def update(
        self,
        appointment_id: int,
        fields: Dict[str, Any],
        timeslot_ids: Optional[Sequence[int]] = None,
        actor: Optional[str] = None,
    ):
        """Apply a partial update; returns ``(appointment, changes)``.

        ``changes`` is the ``field: old → new`` change log.  When
        *timeslot_ids* is given the old slots are released, the links
        replaced and the new slots reserved in the same transaction; that
        is refused with :class:`AppointmentNotActiveError` once the
        appointment is cancelled or settled.
        """
        appointment = await self.get(appointment_id)
        changes: List[str] = []
        old_slot_ids: List[int] = []
        new_slot_ids = _checked_slot_ids(timeslot_ids) if timeslot_ids is not None else None
        current_status = appointment.status
        is_active = current_status in ACTIVE_APPOINTMENT_STATUSES

        try:
            if fields.get("agent_id") and fields["agent_id"] != appointment.agent_id:
                if await self._users.get_by_id(fields["agent_id"]) is None:
                    raise AgentNotFoundError(f"Agent {fields['agent_id']} not found")

            for name in _UPDATABLE_FIELDS:
                if name not in fields:
                    continue
                old, new = getattr(appointment, name), fields[name]
                if old != new:
                    changes.append(f"{name}: {_fmt(old)} → {_fmt(new)}")
                    setattr(appointment, name, new)

            if new_slot_ids is not None:
                old_slot_ids = await self._appointments.get_timeslot_ids(appointment_id)
                if old_slot_ids != new_slot_ids:
                    # Only an active booking may move its seats
                    if not is_active:
                        raise AppointmentNotActiveError(
                            f"Cannot change timeslots of a {current_status} appointment"
                        )
                    await self._release(old_slot_ids)
                    await self._appointments.delete_links(appointment_id)
                    slots = await self._lock_slots(new_slot_ids)
                    await self._appointments.add_links(appointment_id, new_slot_ids)
                    await self._reserve(new_slot_ids)
                    if "start_datetime" not in fields and "end_datetime" not in fields:
                        appointment.start_datetime, appointment.end_datetime = slot_window(slots)
                    changes.append(
                        f"timeslots: {_fmt(old_slot_ids)} → {_fmt(new_slot_ids)}"
                    )
                else:
                    new_slot_ids = None

            if changes:
                appointment.updated_by = actor
                await self._audit.log(
                    self._entity_type,
                    appointment_id,
                    "update",
                    "Updated appointment: " + "; ".join(changes),
                    performed_by=actor,
                )
            await self._appointments.commit()
        except Exception:
            await self._appointments.rollback()
            raise

        if new_slot_ids is not None:
            await self._invalidate(old_slot_ids + new_slot_ids)
        return appointment, changes

    async def delete(self, appointment_id: int, actor: Optional[str] = None) -> List[int]:
        """Delete an appointment; returns the slot ids whose seats were given back.

        Seats go back only for an active appointment.  A cancelled one
        released them already and a settled one keeps its past count.
        """
        appointment = await self.get(appointment_id)
        holds_seats = appointment.status in ACTIVE_APPOINTMENT_STATUSES
        slot_ids: List[int] = []
        try:
            linked = await self._appointments.get_timeslot_ids(appointment_id)
            await self._appointments.delete(appointment_id)
            if holds_seats:
                slot_ids = linked
                await self._release(slot_ids)
            await self._audit.log(
                self._entity_type,
                appointment_id,
                "delete",
                f"Deleted appointment {appointment_id}, released timeslots {slot_ids}",
                performed_by=actor,
            )
            await self._appointments.commit()
        except Exception:
            await self._appointments.rollback()
            raise
        await self._invalidate(slot_ids)
        logger.info("Deleted %s appointment %s", self._kind.value, appointment_id)
        return slot_ids

    async def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ):
        """Move an appointment along its state machine.

        ``cancelled`` also releases the slots and puts the person back to
        ``assigned``; ``done`` / ``missed`` are reflected on the person as
        ``done`` / ``missed/RS``.
        """
        status = AppointmentStatus(status)
        appointment = await self.get(appointment_id)
        current = appointment.status
        validate_appointment_transition(current, status)

        party_id = getattr(appointment, self._appointments.party_fk)
        party = await self._parties.get_by_id(party_id, include_deleted=True)
        # A blacklisted person keeps that status whatever happens to the booking
        follows = party is not None and party.status not in TERMINAL_PARTY_STATUSES
        released: List[int] = []
        try:
            appointment.status = status.value
            appointment.updated_by = actor
            if notes is not None:
                appointment.notes = notes

            if status is AppointmentStatus.cancelled and current in ACTIVE_APPOINTMENT_STATUSES:
                released = await self._appointments.get_timeslot_ids(appointment_id)
                await self._release(released)
                if follows:
                    await self._parties.update_fields(
                        party_id,
                        {"status": LeadStatus.assigned.value, "updated_by": actor},
                    )
            elif follows and status.value in APPOINTMENT_OUTCOME_TO_PARTY_STATUS:
                await self._parties.update_fields(
                    party_id,
                    {
                        "status": APPOINTMENT_OUTCOME_TO_PARTY_STATUS[status.value],
                        "updated_by": actor,
                    },
                )

            await self._audit.log(
                self._entity_type,
                appointment_id,
                "status_update",
                f"status: {current} → {status.value}"
                + (f" ({notes})" if notes else ""),
                performed_by=actor,
            )
            await self._appointments.commit()
        except Exception:
            await self._appointments.rollback()
            raise

        await self._invalidate(released)
        return appointment

    async def cancel(self, appointment_id: int, actor: Optional[str] = None):
        """Cancel an upcoming appointment (see :meth:`update_status`)."""
        return await self.update_status(
            appointment_id, AppointmentStatus.cancelled, actor=actor
        )
