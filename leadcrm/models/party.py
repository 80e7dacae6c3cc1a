from typing import Dict, NamedTuple, Type

from leadcrm.models.appointment import (
    Appointment,
    AppointmentTimeslot,
    BorrowerAppointment,
    BorrowerAppointmentTimeslot,
)
from leadcrm.models.base import Base
from leadcrm.models.borrower import Borrower
from leadcrm.models.lead import Lead
from leadcrm.schemas.common import PartyKind


class PartyBinding(NamedTuple):
    """Tables behind one :class:`PartyKind`.

    Leads and borrowers have parallel appointment tables; services pick
    the right trio here instead of branching on the kind everywhere.
    """

    kind: PartyKind
    party_model: Type[Base]
    appointment_model: Type[Base]
    link_model: Type[Base]
    party_fk: str


PARTY_BINDINGS: Dict[PartyKind, PartyBinding] = {
    PartyKind.lead: PartyBinding(
        PartyKind.lead, Lead, Appointment, AppointmentTimeslot, "lead_id"
    ),
    PartyKind.borrower: PartyBinding(
        PartyKind.borrower,
        Borrower,
        BorrowerAppointment,
        BorrowerAppointmentTimeslot,
        "borrower_id",
    ),
}


def binding_for(kind: PartyKind | str) -> PartyBinding:
    return PARTY_BINDINGS[PartyKind(kind)]
