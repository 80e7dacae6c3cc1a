from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func

from leadcrm.core.constants import LEAD_STATUSES, check_clause
from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class Lead(Base):
    """Prospective borrower captured from an acquisition channel.

    ``status`` is one of :class:`~leadcrm.schemas.common.LeadStatus`.
    Leads are soft-deleted through ``is_deleted`` and never removed, so
    appointments and assignment history keep their references.
    """

    __tablename__ = "leads"
    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False)
    phone_number = Column(String(30), nullable=False)
    email = Column(String(255))
    source = Column(String(100))
    amount = Column(Numeric(12, 2))
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
        Index("idx_leads_status_assigned", "status", "assigned_to"),
        Index("idx_leads_created_at", "created_at"),
    )
