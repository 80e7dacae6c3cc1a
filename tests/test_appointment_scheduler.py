"""Booking, editing and cancelling appointments against a real schema."""

import json
from datetime import datetime, time, timezone

import pytest

from leadcrm.core.exceptions import (
    ActiveAppointmentExistsError,
    AgentNotFoundError,
    AppointmentNotActiveError,
    AppointmentNotFoundError,
    InvalidStatusTransitionError,
    LeadNotFoundError,
    TimeslotFullError,
    TimeslotNotFoundError,
    ValidationError,
)
from leadcrm.core.timezone import as_utc
from leadcrm.dependencies import build_appointment_scheduler
from leadcrm.repositories.audit_repository import AuditLogRepository
from leadcrm.repositories.party_repository import PartyRepository
from leadcrm.repositories.timeslot_repository import TimeslotRepository
from leadcrm.schemas.common import AppointmentStatus, PartyKind


async def _occupied(db_session, timeslot_id: int) -> int:
    return (await TimeslotRepository(db_session).get_by_id(timeslot_id)).occupied_count


async def _status(db_session, party_id: int, kind: PartyKind = PartyKind.lead) -> str:
    return (await PartyRepository(db_session, kind).get_by_id(party_id)).status


@pytest.fixture
def scheduler(db_session, mock_cache):
    return build_appointment_scheduler(PartyKind.lead, db_session, mock_cache)


class TestCreate:
    @pytest.mark.asyncio
    async def test_books_slot_and_marks_lead_booked(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead = await seed.lead()
        slot = await seed.timeslot(max_capacity=2)

        appointment = await scheduler.create(lead.id, "agent-1", [slot.id], actor="agent-1")

        assert appointment.status == "upcoming"
        assert await _occupied(db_session, slot.id) == 1
        assert await _status(db_session, lead.id) == "booked"
        out = await scheduler.to_out(appointment)
        assert out.party_id == lead.id
        assert out.timeslot_ids == [slot.id]
        entries = await AuditLogRepository(db_session).list_for_entity("appointment", appointment.id)
        assert [(e.action, e.performed_by) for e in entries] == [("create", "agent-1")]

    @pytest.mark.asyncio
    async def test_window_is_derived_from_slots_on_business_clock(
        self, db_session, seed, scheduler
    ):
        await seed.user("agent-1")
        lead = await seed.lead()
        first = await seed.timeslot(start=time(10, 0), end=time(10, 30))
        second = await seed.timeslot(start=time(10, 30), end=time(11, 0))

        appointment = await scheduler.create(lead.id, "agent-1", [first.id, second.id])

        assert as_utc(appointment.start_datetime) == datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc)
        assert as_utc(appointment.end_datetime) == datetime(2025, 3, 10, 3, 0, tzinfo=timezone.utc)
        assert await scheduler._appointments.get_timeslot_ids(appointment.id) == [
            first.id,
            second.id,
        ]

    @pytest.mark.asyncio
    async def test_third_booking_of_two_seat_slot_is_rejected(
        self, db_session, seed, scheduler
    ):
        await seed.user("agent-1")
        lead_ids = [
            (await seed.lead(full_name=name, phone_number=f"+65900000{i}")).id
            for i, name in enumerate(["A", "B", "C"])
        ]
        slot_id = (await seed.timeslot(max_capacity=2)).id

        await scheduler.create(lead_ids[0], "agent-1", [slot_id])
        await scheduler.create(lead_ids[1], "agent-1", [slot_id])
        with pytest.raises(TimeslotFullError):
            await scheduler.create(lead_ids[2], "agent-1", [slot_id])

        assert await _occupied(db_session, slot_id) == 2
        assert await _status(db_session, lead_ids[2]) == "new"
        assert await scheduler.check_existing(lead_ids[2]) is None

    @pytest.mark.asyncio
    async def test_second_active_appointment_is_rejected(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        first_id = (await seed.timeslot()).id
        second_id = (await seed.timeslot(start=time(11, 0), end=time(11, 30))).id

        await scheduler.create(lead_id, "agent-1", [first_id])
        with pytest.raises(ActiveAppointmentExistsError):
            await scheduler.create(lead_id, "agent-1", [second_id])

        assert await _occupied(db_session, second_id) == 0

    @pytest.mark.asyncio
    async def test_disabled_slot_is_rejected(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot(is_disabled=True)).id

        with pytest.raises(TimeslotFullError):
            await scheduler.create(lead_id, "agent-1", [slot_id])

    @pytest.mark.asyncio
    async def test_missing_references(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id

        with pytest.raises(LeadNotFoundError):
            await scheduler.create(999, "agent-1", [slot_id])
        with pytest.raises(AgentNotFoundError):
            await scheduler.create(lead_id, "ghost", [slot_id])
        with pytest.raises(TimeslotNotFoundError):
            await scheduler.create(lead_id, "agent-1", [slot_id, 999])
        assert await _occupied(db_session, slot_id) == 0

    @pytest.mark.asyncio
    async def test_blacklisted_lead_cannot_book(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead(status="blacklisted")).id
        slot_id = (await seed.timeslot()).id

        with pytest.raises(InvalidStatusTransitionError):
            await scheduler.create(lead_id, "agent-1", [slot_id])
        assert await _occupied(db_session, slot_id) == 0

    @pytest.mark.asyncio
    async def test_borrower_appointments_use_their_own_tables(
        self, db_session, seed, mock_cache
    ):
        await seed.user("agent-1")
        borrower_id = (await seed.borrower()).id
        slot_id = (await seed.timeslot()).id
        borrower_scheduler = build_appointment_scheduler(
            PartyKind.borrower, db_session, mock_cache
        )

        appointment = await borrower_scheduler.create(borrower_id, "agent-1", [slot_id])

        assert appointment.borrower_id == borrower_id
        assert await _status(db_session, borrower_id, PartyKind.borrower) == "booked"
        assert (await borrower_scheduler.check_existing(borrower_id)).id == appointment.id


class TestUpdate:
    @pytest.mark.asyncio
    async def test_change_log_and_slot_swap(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        old_id = (await seed.timeslot()).id
        new_id = (await seed.timeslot(start=time(11, 0), end=time(11, 30))).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [old_id])).id

        appointment, changes = await scheduler.update(
            appointment_id, {"notes": "bring payslips"}, timeslot_ids=[new_id]
        )

        assert "notes: none → bring payslips" in changes
        assert f"timeslots: [{old_id}] → [{new_id}]" in changes
        assert await _occupied(db_session, old_id) == 0
        assert await _occupied(db_session, new_id) == 1
        assert as_utc(appointment.start_datetime) == datetime(2025, 3, 10, 3, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_unchanged_fields_produce_no_changes(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (
            await scheduler.create(lead_id, "agent-1", [slot_id], notes="same")
        ).id

        _, changes = await scheduler.update(
            appointment_id, {"notes": "same"}, timeslot_ids=[slot_id]
        )

        assert changes == []
        assert await _occupied(db_session, slot_id) == 1

    @pytest.mark.asyncio
    async def test_swap_to_full_slot_keeps_original_booking(
        self, db_session, seed, scheduler
    ):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        old_id = (await seed.timeslot()).id
        full_id = (
            await seed.timeslot(start=time(11, 0), end=time(11, 30), occupied_count=1)
        ).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [old_id])).id

        with pytest.raises(TimeslotFullError):
            await scheduler.update(appointment_id, {}, timeslot_ids=[full_id])

        assert await _occupied(db_session, old_id) == 1
        assert await _occupied(db_session, full_id) == 1
        assert await scheduler._appointments.get_timeslot_ids(appointment_id) == [old_id]

    @pytest.mark.asyncio
    async def test_repeated_slot_is_rejected(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        old_id = (await seed.timeslot()).id
        new_id = (await seed.timeslot(start=time(11, 0), end=time(11, 30), max_capacity=2)).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [old_id])).id

        with pytest.raises(ValidationError):
            await scheduler.update(appointment_id, {}, timeslot_ids=[new_id, new_id])

        assert await _occupied(db_session, old_id) == 1
        assert await _occupied(db_session, new_id) == 0

    @pytest.mark.asyncio
    async def test_cancelled_appointment_cannot_move_slots(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        first = (await seed.lead()).id
        second = (await seed.lead(phone_number="+6590000001")).id
        shared_id = (await seed.timeslot(max_capacity=2)).id
        other_id = (await seed.timeslot(start=time(11, 0), end=time(11, 30))).id
        cancelled_id = (await scheduler.create(first, "agent-1", [shared_id])).id
        await scheduler.cancel(cancelled_id)
        await scheduler.create(second, "agent-1", [shared_id])

        with pytest.raises(AppointmentNotActiveError):
            await scheduler.update(cancelled_id, {}, timeslot_ids=[other_id])

        assert await _occupied(db_session, shared_id) == 1
        assert await _occupied(db_session, other_id) == 0
        assert await scheduler._appointments.get_timeslot_ids(cancelled_id) == [shared_id]

    @pytest.mark.asyncio
    async def test_settled_appointment_can_still_take_notes(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [slot_id])).id
        await scheduler.update_status(appointment_id, AppointmentStatus.done)

        _, changes = await scheduler.update(
            appointment_id, {"notes": "loan approved"}, timeslot_ids=[slot_id]
        )

        assert changes == ["notes: none → loan approved"]
        assert await _occupied(db_session, slot_id) == 1


class TestDeleteAndStatus:
    @pytest.mark.asyncio
    async def test_delete_releases_slots(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [slot_id])).id

        released = await scheduler.delete(appointment_id)

        assert released == [slot_id]
        assert await _occupied(db_session, slot_id) == 0
        with pytest.raises(AppointmentNotFoundError):
            await scheduler.get(appointment_id)

    @pytest.mark.asyncio
    async def test_deleting_cancelled_appointment_keeps_other_bookings(
        self, db_session, seed, scheduler
    ):
        await seed.user("agent-1")
        first = (await seed.lead()).id
        second = (await seed.lead(phone_number="+6590000001")).id
        slot_id = (await seed.timeslot(max_capacity=2)).id
        cancelled_id = (await scheduler.create(first, "agent-1", [slot_id])).id
        await scheduler.cancel(cancelled_id)
        await scheduler.create(second, "agent-1", [slot_id])

        released = await scheduler.delete(cancelled_id)

        assert released == []
        assert await _occupied(db_session, slot_id) == 1

    @pytest.mark.asyncio
    async def test_cancel_keeps_blacklisted_lead(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [slot_id])).id
        parties = PartyRepository(db_session, PartyKind.lead)
        await parties.update_fields(lead_id, {"status": "blacklisted"})
        await parties.commit()

        appointment = await scheduler.cancel(appointment_id)

        assert appointment.status == "cancelled"
        assert await _occupied(db_session, slot_id) == 0
        assert await _status(db_session, lead_id) == "blacklisted"

    @pytest.mark.asyncio
    async def test_cancel_releases_and_reassigns_lead(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [slot_id])).id

        appointment = await scheduler.cancel(appointment_id)

        assert appointment.status == "cancelled"
        assert await _occupied(db_session, slot_id) == 0
        assert await _status(db_session, lead_id) == "assigned"
        assert await scheduler.check_existing(lead_id) is None

    @pytest.mark.asyncio
    async def test_cancelled_cannot_become_done(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [slot_id])).id
        await scheduler.cancel(appointment_id)

        with pytest.raises(InvalidStatusTransitionError):
            await scheduler.update_status(appointment_id, AppointmentStatus.done)

    @pytest.mark.asyncio
    async def test_outcomes_are_mirrored_on_the_lead(self, db_session, seed, scheduler):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id
        appointment_id = (await scheduler.create(lead_id, "agent-1", [slot_id])).id

        await scheduler.update_status(appointment_id, AppointmentStatus.missed, notes="no show")
        assert await _status(db_session, lead_id) == "missed/RS"

        await scheduler.update_status(appointment_id, AppointmentStatus.done)
        assert await _status(db_session, lead_id) == "done"
        # Outcomes keep the seat
        assert await _occupied(db_session, slot_id) == 1


class TestAvailableTimeslots:
    @pytest.mark.asyncio
    async def test_computes_and_caches(self, seed, scheduler, mock_redis, business_day):
        free = await seed.timeslot(max_capacity=2, occupied_count=1)
        full = await seed.timeslot(start=time(11, 0), end=time(11, 30), occupied_count=1)

        slots = await scheduler.available_timeslots(business_day)

        assert [(s.id, s.available) for s in slots] == [(free.id, True), (full.id, False)]
        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == "timeslots:available:2025-03-10"
        assert len(json.loads(payload)) == 2

    @pytest.mark.asyncio
    async def test_serves_cached_entry(self, scheduler, mock_redis, business_day):
        mock_redis.get.return_value = json.dumps(
            [
                {
                    "id": 7,
                    "date": "2025-03-10",
                    "start_time": "09:00:00",
                    "end_time": "09:30:00",
                    "max_capacity": 1,
                    "occupied_count": 0,
                    "available": True,
                }
            ]
        )

        slots = await scheduler.available_timeslots(business_day)

        assert [s.id for s in slots] == [7]
        mock_redis.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_booking_invalidates_the_day(self, seed, scheduler, mock_redis):
        await seed.user("agent-1")
        lead_id = (await seed.lead()).id
        slot_id = (await seed.timeslot()).id

        await scheduler.create(lead_id, "agent-1", [slot_id])

        mock_redis.delete.assert_awaited_with("timeslots:available:2025-03-10")
