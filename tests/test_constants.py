import pytest

from leadcrm.core.constants import (
    ACTIVE_APPOINTMENT_STATUSES,
    APPOINTMENT_OUTCOME_TO_PARTY_STATUS,
    APPOINTMENT_STATUSES,
    APPOINTMENT_TRANSITIONS,
    LEAD_STATUSES,
    TERMINAL_PARTY_STATUSES,
    TERMINAL_REASONS,
    check_clause,
)
from leadcrm.core.exceptions import InvalidStatusTransitionError
from leadcrm.schemas.common import AppointmentStatus, LeadStatus
from leadcrm.services.status_rules import (
    validate_appointment_transition,
    validate_party_transition,
)


class TestConstantsConsistency:
    """Verify that constants, enums, and the state machines stay in sync."""

    def test_lead_statuses_match_enum(self):
        for member in LeadStatus:
            assert member.value in LEAD_STATUSES

    def test_missed_party_status_keeps_legacy_label(self):
        assert LeadStatus.missed.value == "missed/RS"

    def test_every_appointment_status_has_transition_entry(self):
        assert set(APPOINTMENT_TRANSITIONS) == APPOINTMENT_STATUSES

    def test_active_statuses_are_upcoming_and_scheduled(self):
        assert ACTIVE_APPOINTMENT_STATUSES == {"upcoming", "scheduled"}

    def test_cancelled_is_terminal(self):
        assert APPOINTMENT_TRANSITIONS["cancelled"] == frozenset()

    def test_outcomes_map_onto_party_statuses(self):
        assert APPOINTMENT_OUTCOME_TO_PARTY_STATUS == {
            "done": "done",
            "missed": "missed/RS",
        }
        for party_status in APPOINTMENT_OUTCOME_TO_PARTY_STATUS.values():
            assert party_status in LEAD_STATUSES

    def test_only_blacklisted_is_terminal_for_people(self):
        assert TERMINAL_PARTY_STATUSES == {"blacklisted"}

    def test_check_clause_is_sorted(self):
        assert check_clause("status", {"b", "a"}) == "status IN ('a', 'b')"


class TestTerminalReasons:
    def test_fourteen_reasons(self):
        assert len(TERMINAL_REASONS) == 14

    def test_three_blacklist_reasons(self):
        blacklist = [k for k, r in TERMINAL_REASONS.items() if r.final_status == "blacklisted"]
        assert sorted(blacklist) == [
            "blacklisted_do_not_call",
            "blacklisted_drs_bankrupt",
            "blacklisted_others",
        ]

    def test_remaining_reasons_give_up(self):
        give_up = [k for k, r in TERMINAL_REASONS.items() if r.final_status == "give_up"]
        assert len(give_up) == 11
        assert all(key.startswith("give_up_") for key in give_up)

    def test_only_others_need_custom_text(self):
        custom = {k for k, r in TERMINAL_REASONS.items() if r.custom_reason}
        assert custom == {"blacklisted_others", "give_up_others"}


class TestAppointmentTransitions:
    @pytest.mark.parametrize(
        "current,new",
        [
            ("upcoming", AppointmentStatus.done),
            ("upcoming", AppointmentStatus.missed),
            ("upcoming", AppointmentStatus.cancelled),
            ("scheduled", AppointmentStatus.cancelled),
            ("done", AppointmentStatus.missed),
            ("missed", AppointmentStatus.done),
            ("done", AppointmentStatus.done),
        ],
    )
    def test_valid_transitions(self, current, new):
        # Should not raise
        validate_appointment_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            ("cancelled", AppointmentStatus.done),
            ("cancelled", AppointmentStatus.upcoming),
            ("done", AppointmentStatus.cancelled),
            ("missed", AppointmentStatus.upcoming),
            ("done", AppointmentStatus.upcoming),
        ],
    )
    def test_invalid_transitions(self, current, new):
        with pytest.raises(InvalidStatusTransitionError):
            validate_appointment_transition(current, new)


class TestPartyTransitions:
    def test_blacklisted_cannot_move(self):
        for target in LeadStatus:
            if target is LeadStatus.blacklisted:
                continue
            with pytest.raises(InvalidStatusTransitionError):
                validate_party_transition("blacklisted", target.value)

    def test_give_up_can_be_reopened(self):
        validate_party_transition("give_up", LeadStatus.follow_up.value)
