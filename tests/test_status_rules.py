from datetime import date, datetime, time, timedelta, timezone

import pytest

from leadcrm.core.exceptions import (
    CustomReasonRequiredError,
    InvalidStatusTransitionError,
    LeadNotFoundError,
    ValidationError,
)
from leadcrm.core.timezone import as_utc
from leadcrm.models import Appointment
from leadcrm.repositories.appointment_repository import AppointmentRepository
from leadcrm.repositories.audit_repository import AuditLogRepository, NoteRepository
from leadcrm.repositories.party_repository import PartyRepository
from leadcrm.schemas.common import AppointmentStatus, PartyKind
from leadcrm.services.status_rules import StatusRulesService, terminal_reason_note


@pytest.fixture
def service(db_session, clock):
    return StatusRulesService(
        kind=PartyKind.lead,
        party_repo=PartyRepository(db_session, PartyKind.lead),
        appointment_repo=AppointmentRepository(db_session, PartyKind.lead),
        note_repo=NoteRepository(db_session),
        audit_repo=AuditLogRepository(db_session),
        clock=clock,
    )


async def _reload(db_session, party_id: int):
    return await PartyRepository(db_session, PartyKind.lead).get_by_id(party_id)


async def _notes(db_session, party_id: int):
    return [n.content for n in await NoteRepository(db_session).list_for_party(PartyKind.lead, party_id)]


class TestTerminalReasonNote:
    def test_label_is_upper_cased(self):
        assert terminal_reason_note("give_up_not_interested") == (
            "STATUS UPDATE: GIVE UP - NOT INTERESTED"
        )

    def test_custom_text_is_appended(self):
        assert terminal_reason_note("give_up_others", "  moved abroad ") == (
            "STATUS UPDATE: GIVE UP - OTHERS (moved abroad)"
        )

    def test_blank_custom_text_is_rejected(self):
        with pytest.raises(CustomReasonRequiredError):
            terminal_reason_note("give_up_others", "   ")

    def test_unknown_reason(self):
        with pytest.raises(ValidationError):
            terminal_reason_note("lost_interest")


class TestTerminalStatuses:
    @pytest.mark.asyncio
    async def test_custom_reason_missing_leaves_lead_untouched(self, db_session, seed, service):
        lead_id = (await seed.lead(status="assigned")).id

        with pytest.raises(CustomReasonRequiredError):
            await service.apply_terminal_reason(lead_id, "blacklisted_others")

        assert (await _reload(db_session, lead_id)).status == "assigned"
        assert await _notes(db_session, lead_id) == []

    @pytest.mark.asyncio
    async def test_blacklist_with_custom_reason(self, db_session, seed, service):
        lead_id = (await seed.lead(status="assigned")).id

        result = await service.apply_terminal_reason(
            lead_id, "blacklisted_others", custom_reason_text="abusive caller", actor="agent-1"
        )

        assert result.status == "blacklisted"
        assert (await _reload(db_session, lead_id)).status == "blacklisted"
        assert await _notes(db_session, lead_id) == [
            "STATUS UPDATE: BLACKLISTED - OTHERS (abusive caller)"
        ]

    @pytest.mark.asyncio
    async def test_borrower_without_custom_reason_is_untouched(self, db_session, seed):
        service = StatusRulesService(
            kind=PartyKind.borrower,
            party_repo=PartyRepository(db_session, PartyKind.borrower),
            appointment_repo=AppointmentRepository(db_session, PartyKind.borrower),
            note_repo=NoteRepository(db_session),
            audit_repo=AuditLogRepository(db_session),
        )
        borrower_id = (await seed.borrower(status="assigned")).id

        with pytest.raises(CustomReasonRequiredError):
            await service.apply_terminal_reason(borrower_id, "blacklisted_others")

        borrower = await PartyRepository(db_session, PartyKind.borrower).get_by_id(borrower_id)
        assert borrower.status == "assigned"
        assert await NoteRepository(db_session).list_for_party(PartyKind.borrower, borrower_id) == []

    @pytest.mark.asyncio
    async def test_give_up_keeps_additional_notes_and_clears_follow_up(
        self, db_session, seed, service
    ):
        lead_id = (
            await seed.lead(
                status="follow_up",
                follow_up_date=datetime(2025, 3, 12, 16, 0, tzinfo=timezone.utc),
            )
        ).id

        await service.apply_terminal_reason(
            lead_id, "give_up_already_got_loan", additional_notes="Took a bank loan"
        )

        lead = await _reload(db_session, lead_id)
        assert lead.status == "give_up"
        assert lead.follow_up_date is None
        assert await _notes(db_session, lead_id) == [
            "STATUS UPDATE: GIVE UP - ALREADY GOT LOAN",
            "Took a bank loan",
        ]

    @pytest.mark.asyncio
    async def test_blacklisted_is_final(self, db_session, seed, service):
        lead_id = (await seed.lead(status="assigned")).id
        await service.apply_terminal_reason(lead_id, "blacklisted_do_not_call")

        with pytest.raises(InvalidStatusTransitionError):
            await service.mark_no_answer(lead_id)
        with pytest.raises(InvalidStatusTransitionError):
            await service.apply_terminal_reason(lead_id, "give_up_not_interested")

    @pytest.mark.asyncio
    async def test_unknown_lead(self, service):
        with pytest.raises(LeadNotFoundError):
            await service.apply_terminal_reason(404, "give_up_unemployed")


class TestFollowUpAndNoAnswer:
    @pytest.mark.asyncio
    async def test_follow_up_defaults_to_business_midnight(self, db_session, seed, service):
        lead_id = (await seed.lead(status="assigned")).id

        result = await service.schedule_follow_up(lead_id, date(2025, 3, 10))

        expected = datetime(2025, 3, 9, 16, 0, tzinfo=timezone.utc)
        assert result.follow_up_date == expected
        lead = await _reload(db_session, lead_id)
        assert lead.status == "follow_up"
        assert as_utc(lead.follow_up_date) == expected
        assert await _notes(db_session, lead_id) == [
            "STATUS UPDATE: Set to Follow-up for 2025-03-10"
        ]

    @pytest.mark.asyncio
    async def test_follow_up_with_time(self, seed, service):
        lead_id = (await seed.lead(status="assigned")).id

        result = await service.schedule_follow_up(lead_id, date(2025, 3, 10), time(14, 30))

        assert result.follow_up_date == datetime(2025, 3, 10, 6, 30, tzinfo=timezone.utc)
        assert result.note.endswith("at 14:30")

    @pytest.mark.asyncio
    async def test_no_answer_clears_follow_up(self, db_session, seed, service):
        lead_id = (await seed.lead(status="assigned")).id
        await service.schedule_follow_up(lead_id, date(2025, 3, 10))

        result = await service.mark_no_answer(lead_id)

        assert result.status == "no_answer"
        lead = await _reload(db_session, lead_id)
        assert lead.status == "no_answer"
        assert lead.follow_up_date is None

    @pytest.mark.asyncio
    async def test_recycle_only_stale_no_answer(self, db_session, seed, service):
        now = datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc)
        stale_id = (
            await seed.lead(status="no_answer", updated_at=now - timedelta(days=20))
        ).id
        fresh_id = (
            await seed.lead(
                phone_number="+6590000001",
                status="no_answer",
                updated_at=now - timedelta(days=1),
            )
        ).id

        result = await service.recycle_no_answer(days=14, actor="cron")

        assert result.processed == 1
        assert result.updated == 1
        stale = await _reload(db_session, stale_id)
        assert stale.status == "follow_up"
        assert as_utc(stale.follow_up_date) == datetime(2025, 3, 9, 16, 0, tzinfo=timezone.utc)
        assert (await _reload(db_session, fresh_id)).status == "no_answer"


class TestOverdueSweep:
    async def _appointment(self, db_session, lead_id: int, start: datetime) -> int:
        appointment = Appointment(
            lead_id=lead_id,
            agent_id="agent-1",
            status="upcoming",
            start_datetime=start,
            end_datetime=start + timedelta(minutes=30),
        )
        db_session.add(appointment)
        await db_session.commit()
        return appointment.id

    @pytest.mark.asyncio
    async def test_marks_overdue_appointments(self, db_session, seed, service):
        await seed.user("agent-1")
        missed_lead = (await seed.lead(status="booked")).id
        attended_lead = (await seed.lead(phone_number="+6590000001", status="booked")).id
        recent_lead = (await seed.lead(phone_number="+6590000002", status="booked")).id

        # Clock is 02:00 UTC; the default threshold is 2.5 hours
        missed = await self._appointment(
            db_session, missed_lead, datetime(2025, 3, 9, 23, 0, tzinfo=timezone.utc)
        )
        attended = await self._appointment(
            db_session, attended_lead, datetime(2025, 3, 9, 22, 0, tzinfo=timezone.utc)
        )
        recent = await self._appointment(
            db_session, recent_lead, datetime(2025, 3, 10, 0, 0, tzinfo=timezone.utc)
        )

        result = await service.sweep_overdue_appointments(attended_ids=[attended], actor="cron")

        assert result.processed == 2
        assert result.updated == 2
        assert result.success is True
        outcomes = {item.appointment_id: item.new_status for item in result.details}
        assert outcomes == {missed: "missed", attended: "done"}

        repo = AppointmentRepository(db_session, PartyKind.lead)
        assert (await repo.get_by_id(recent)).status == "upcoming"
        assert (await _reload(db_session, missed_lead)).status == "missed/RS"
        assert (await _reload(db_session, attended_lead)).status == "done"
        assert (await _reload(db_session, recent_lead)).status == "booked"

    @pytest.mark.asyncio
    async def test_custom_threshold_and_default_done(self, db_session, seed, service):
        await seed.user("agent-1")
        lead_id = (await seed.lead(status="booked")).id
        appointment_id = await self._appointment(
            db_session, lead_id, datetime(2025, 3, 10, 1, 0, tzinfo=timezone.utc)
        )

        result = await service.sweep_overdue_appointments(
            default_disposition=AppointmentStatus.done, threshold_hours=0.5
        )

        assert [item.appointment_id for item in result.details] == [appointment_id]
        assert (await _reload(db_session, lead_id)).status == "done"

    @pytest.mark.asyncio
    async def test_exactly_at_threshold_is_left_alone(self, db_session, seed, service):
        await seed.user("agent-1")
        lead_id = (await seed.lead(status="booked")).id
        # Started 2.5 hours before the 02:00 UTC clock
        appointment_id = await self._appointment(
            db_session, lead_id, datetime(2025, 3, 9, 23, 30, tzinfo=timezone.utc)
        )

        result = await service.sweep_overdue_appointments()

        assert result.processed == 0
        repo = AppointmentRepository(db_session, PartyKind.lead)
        assert (await repo.get_by_id(appointment_id)).status == "upcoming"

    @pytest.mark.asyncio
    async def test_blacklisted_lead_keeps_status(self, db_session, seed, service):
        await seed.user("agent-1")
        lead_id = (await seed.lead(status="blacklisted")).id
        appointment_id = await self._appointment(
            db_session, lead_id, datetime(2025, 3, 9, 20, 0, tzinfo=timezone.utc)
        )

        result = await service.sweep_overdue_appointments()

        assert result.updated == 1
        repo = AppointmentRepository(db_session, PartyKind.lead)
        assert (await repo.get_by_id(appointment_id)).status == "missed"
        assert (await _reload(db_session, lead_id)).status == "blacklisted"

    @pytest.mark.asyncio
    async def test_rejects_non_outcome_disposition(self, service):
        with pytest.raises(ValidationError):
            await service.sweep_overdue_appointments(
                default_disposition=AppointmentStatus.cancelled
            )
