from typing import Dict, FrozenSet, NamedTuple

from leadcrm.schemas.common import (
    AppointmentStatus,
    ContactSyncStatus,
    LeadStatus,
)


def check_clause(column: str, values) -> str:
    """Render a ``column IN (...)`` CHECK constraint body."""
    return f"{column} IN ({', '.join(repr(v) for v in sorted(values))})"


LEAD_STATUSES: FrozenSet[str] = frozenset(s.value for s in LeadStatus)

APPOINTMENT_STATUSES: FrozenSet[str] = frozenset(s.value for s in AppointmentStatus)

CONTACT_SYNC_STATUSES: FrozenSet[str] = frozenset(s.value for s in ContactSyncStatus)

# Statuses that count towards "one active appointment per person"
ACTIVE_APPOINTMENT_STATUSES: FrozenSet[str] = frozenset(
    {AppointmentStatus.upcoming.value, AppointmentStatus.scheduled.value}
)

# Appointment state machine.  ``done`` <-> ``missed`` is allowed so that an
# operator can correct a sweep that picked the wrong disposition.
APPOINTMENT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "upcoming": frozenset({"done", "missed", "cancelled"}),
    "scheduled": frozenset({"done", "missed", "cancelled"}),
    "done": frozenset({"missed"}),
    "missed": frozenset({"done"}),
    "cancelled": frozenset(),
}

# Lead / borrower statuses nothing may leave
TERMINAL_PARTY_STATUSES: FrozenSet[str] = frozenset({LeadStatus.blacklisted.value})

# How the overdue sweep reflects an appointment outcome on the person
APPOINTMENT_OUTCOME_TO_PARTY_STATUS: Dict[str, str] = {
    AppointmentStatus.done.value: LeadStatus.done.value,
    AppointmentStatus.missed.value: LeadStatus.missed.value,
}


class TerminalReason(NamedTuple):
    label: str
    final_status: str
    custom_reason: bool = False


TERMINAL_REASONS: Dict[str, TerminalReason] = {
    "blacklisted_do_not_call": TerminalReason(
        "Blacklisted - Do Not Call", LeadStatus.blacklisted.value
    ),
    "blacklisted_drs_bankrupt": TerminalReason(
        "Blacklist - DRS / Bankrupt", LeadStatus.blacklisted.value
    ),
    "blacklisted_others": TerminalReason(
        "Blacklisted - Others", LeadStatus.blacklisted.value, custom_reason=True
    ),
    "give_up_trouble_maker": TerminalReason(
        "Give Up - Trouble Maker", LeadStatus.give_up.value
    ),
    "give_up_already_got_loan": TerminalReason(
        "Give Up - Already Got Loan", LeadStatus.give_up.value
    ),
    "give_up_cash_flow_ok": TerminalReason(
        "Give Up - Cash Flow Ok", LeadStatus.give_up.value
    ),
    "give_up_loan_plan_dispute_on_charges": TerminalReason(
        "Give Up - Loan Plan & Dispute on Charges", LeadStatus.give_up.value
    ),
    "give_up_feedback_retail_payment_refund_policy": TerminalReason(
        "Give Up - Feedback (Retail, Payment, Refund Policy)",
        LeadStatus.give_up.value,
    ),
    "give_up_unsatisfied_service_location_waiting_time_income_etc": TerminalReason(
        "Give Up - Unsatisfied Service (Location, Waiting Time, Income etc)",
        LeadStatus.give_up.value,
    ),
    "give_up_prs_r": TerminalReason("Give Up - PRS/R", LeadStatus.give_up.value),
    "give_up_not_interested": TerminalReason(
        "Give Up - Not Interested", LeadStatus.give_up.value
    ),
    "give_up_no_income_proof": TerminalReason(
        "Give Up - No Income Proof", LeadStatus.give_up.value
    ),
    "give_up_unemployed": TerminalReason(
        "Give Up - Unemployed", LeadStatus.give_up.value
    ),
    "give_up_others": TerminalReason(
        "Give Up - Others", LeadStatus.give_up.value, custom_reason=True
    ),
}

NOTE_PREFIX: str = "STATUS UPDATE:"

# Time-to-live for the per-date available-timeslot cache entries
TIMESLOT_CACHE_PREFIX: str = "timeslots:available"
