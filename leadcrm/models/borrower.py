from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.sql import func

from leadcrm.core.constants import LEAD_STATUSES, check_clause
from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class Borrower(Base):
    """A lead that has progressed into an active loan relationship.

    Shares the lead lifecycle statuses; the loan-side fields are mirrored
    from the loan management system and are informational here.
    """

    __tablename__ = "borrowers"
    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="SET NULL"))
    full_name = Column(String(200), nullable=False)
    phone_number = Column(String(30), nullable=False)
    email = Column(String(255))
    source = Column(String(100))
    loan_id = Column(String(64))
    loan_status = Column(String(50))
    aa_status = Column(String(50))
    status = Column(String(30), nullable=False, default="new", server_default="new")
    assigned_to = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"))
    follow_up_date = Column(DateTime(timezone=True))
    is_deleted = Column(Boolean, nullable=False, default=False, server_default="0")
    created_by = Column(String(64))
    updated_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (
        CheckConstraint(check_clause("status", LEAD_STATUSES), name="status"),
        Index("idx_borrowers_status_assigned", "status", "assigned_to"),
    )
