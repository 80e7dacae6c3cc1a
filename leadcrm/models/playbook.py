from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from leadcrm.core.constants import CONTACT_SYNC_STATUSES, check_clause
from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class Playbook(Base):
    """Local mirror of a dialer campaign owned by one agent."""

    __tablename__ = "playbooks"
    id = Column(Integer, primary_key=True, autoincrement=True)
    dialer_playbook_id = Column(String(100), unique=True)
    name = Column(String(200), nullable=False)
    agent_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False, server_default="0")
    last_synced_at = Column(DateTime(timezone=True))
    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())


class PlaybookContact(Base):
    """One lead pushed (or attempted) into a dialer playbook.

    The dialer is authoritative; ``status`` records the last known sync
    outcome and ``error_message`` the reason for a ``failed`` row.
    """

    __tablename__ = "playbook_contacts"
    id = Column(Integer, primary_key=True, autoincrement=True)
    playbook_id = Column(
        Integer, ForeignKey("playbooks.id", ondelete="CASCADE"), nullable=False
    )
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    dialer_contact_id = Column(String(100))
    phone_number = Column(String(30), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    data_source = Column(String(100))
    status = Column(String(20), nullable=False, default="pending", server_default="pending")
    api_response = Column(JSON)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("playbook_id", "lead_id"),
        CheckConstraint(check_clause("status", CONTACT_SYNC_STATUSES), name="status"),
    )
