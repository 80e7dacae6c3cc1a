from sqlalchemy import event

from leadcrm.core.timezone import utc_now
from leadcrm.models.appointment import Appointment, BorrowerAppointment
from leadcrm.models.assignment import AutoAssignmentSettings, CheckedInAgent
from leadcrm.models.borrower import Borrower
from leadcrm.models.lead import Lead
from leadcrm.models.playbook import Playbook, PlaybookContact


# Auto updated_at
@event.listens_for(Lead, "before_update")
@event.listens_for(Borrower, "before_update")
@event.listens_for(Appointment, "before_update")
@event.listens_for(BorrowerAppointment, "before_update")
@event.listens_for(CheckedInAgent, "before_update")
@event.listens_for(AutoAssignmentSettings, "before_update")
@event.listens_for(Playbook, "before_update")
@event.listens_for(PlaybookContact, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = utc_now()
